"""Domain inputs used across services and persistence."""

from .models import MarketDraft, MarketFilters, MarketUpdate, ProfileUpdate, SettlementSummary

__all__ = [
    "MarketDraft",
    "MarketFilters",
    "MarketUpdate",
    "ProfileUpdate",
    "SettlementSummary",
]
