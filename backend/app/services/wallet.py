"""Local ed25519 checks for Solana wallet logins."""

from __future__ import annotations

from loguru import logger
from solders.pubkey import Pubkey
from solders.signature import Signature


def is_valid_wallet_address(address: str) -> bool:
    """Return True if ``address`` decodes to a 32-byte base58 public key."""

    try:
        Pubkey.from_string(address)
    except (TypeError, ValueError):
        return False
    return True


def verify_wallet_signature(address: str, signature: str, message: str) -> bool:
    """Check a base58 detached signature over the UTF-8 ``message``.

    Malformed keys or signatures count as a failed verification rather than
    an error so callers can report a single ``InvalidSignature`` outcome.
    """

    try:
        pubkey = Pubkey.from_string(address)
        parsed_signature = Signature.from_string(signature)
    except (TypeError, ValueError) as exc:
        logger.debug("Rejecting undecodable wallet credentials for {}: {}", address, exc)
        return False
    return parsed_signature.verify(pubkey, message.encode("utf-8"))
