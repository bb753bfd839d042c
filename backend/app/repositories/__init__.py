"""Repository abstractions for database interactions."""

from .ledger_repository import LedgerRepository
from .market_repository import MarketRepository
from .position_repository import PositionRepository
from .types import CategoryRecord, MarketWithCount, PageRecord
from .user_repository import UserRepository

__all__ = [
    "CategoryRecord",
    "LedgerRepository",
    "MarketRepository",
    "MarketWithCount",
    "PageRecord",
    "PositionRepository",
    "UserRepository",
]
