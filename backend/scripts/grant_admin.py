import argparse

from loguru import logger

from app import crud
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db import init_db, session_scope


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Set the KYC tier of a registered wallet")
    parser.add_argument("wallet_address", help="Wallet that has already requested a login nonce")
    parser.add_argument(
        "--kyc-level",
        type=int,
        default=settings.admin_kyc_level,
        help=f"KYC tier to assign (admin tier is {settings.admin_kyc_level})",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging(get_settings())
    init_db()

    with session_scope() as session:
        user = crud.set_kyc_level(session, args.wallet_address, args.kyc_level)
        user_id = user.id

    logger.info("Wallet {} (user {}) now at KYC level {}", args.wallet_address, user_id, args.kyc_level)


if __name__ == "__main__":
    main()
