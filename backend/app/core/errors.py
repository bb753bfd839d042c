"""Service-level error taxonomy.

Services raise these exceptions; the API renders them as
``{"detail": message, "code": code}`` with the matching HTTP status.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500
    code = "INTERNAL"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticated(ServiceError):
    status_code = 401
    code = "NOT_AUTHENTICATED"
    default_message = "Missing or invalid Authorization header"


class InvalidOrExpiredToken(ServiceError):
    status_code = 401
    code = "INVALID_TOKEN"
    default_message = "Invalid or expired token"


class NonceExpired(ServiceError):
    status_code = 401
    code = "NONCE_EXPIRED"
    default_message = "Nonce expired. Please request a new login."


class InvalidSignature(ServiceError):
    status_code = 401
    code = "INVALID_SIGNATURE"
    default_message = "Invalid wallet signature"


class InsufficientPrivilege(ServiceError):
    status_code = 403
    code = "INSUFFICIENT_PRIVILEGE"
    default_message = "Insufficient privileges"


class NotOwner(ServiceError):
    status_code = 403
    code = "NOT_OWNER"
    default_message = "Not authorized to act on this resource"


class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


class MarketNotFound(NotFound):
    code = "MARKET_NOT_FOUND"
    default_message = "Market not found"


class PositionNotFound(NotFound):
    code = "POSITION_NOT_FOUND"
    default_message = "Position not found"


class InvalidInput(ServiceError):
    status_code = 400
    code = "INVALID_INPUT"
    default_message = "Invalid input"


class NotSettled(ServiceError):
    status_code = 400
    code = "NOT_SETTLED"
    default_message = "Position cannot be claimed until it is settled"


class NotAWinningPosition(ServiceError):
    status_code = 400
    code = "NOT_A_WINNING_POSITION"
    default_message = "Only winning positions can be claimed"


class AlreadyClaimed(ServiceError):
    status_code = 409
    code = "ALREADY_CLAIMED"
    default_message = "Position winnings have already been claimed"


class Conflict(ServiceError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Request conflicts with the current state"


class Internal(ServiceError):
    pass


__all__ = [
    "AlreadyClaimed",
    "Conflict",
    "InsufficientPrivilege",
    "Internal",
    "InvalidInput",
    "InvalidOrExpiredToken",
    "InvalidSignature",
    "MarketNotFound",
    "NonceExpired",
    "NotAWinningPosition",
    "NotAuthenticated",
    "NotFound",
    "NotOwner",
    "NotSettled",
    "PositionNotFound",
    "ServiceError",
    "UserNotFound",
]
