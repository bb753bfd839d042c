import argparse

from loguru import logger

from app import crud
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db import init_db, session_scope


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve a market and settle its positions")
    parser.add_argument("market_id", help="Identifier of the market to resolve")
    parser.add_argument(
        "--outcome",
        required=True,
        choices=["yes", "no"],
        help="Winning side of the market",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging(get_settings())
    init_db()

    with session_scope() as session:
        market = crud.get_market(session, args.market_id)
        if market is None:
            summary = None
        else:
            logger.info("Resolving market {}: {}", market.id, market.question)
            summary = crud.resolve_market(session, market.id, args.outcome == "yes")

    if summary is None:
        logger.error("Market {} does not exist", args.market_id)
        raise SystemExit(1)

    logger.info(
        "Resolved market {}: {} positions settled, {} winning, total payout {}",
        summary.market_id,
        summary.settled_positions,
        summary.winning_positions,
        summary.total_payout,
    )


if __name__ == "__main__":
    main()
