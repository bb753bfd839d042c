"""Shared repository result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Generic, TypeVar

from app.models import Market

T = TypeVar("T")


@dataclass(slots=True)
class PageRecord(Generic[T]):
    """One page of rows plus the unpaginated total."""

    items: list[T] = field(default_factory=list)
    total: int = 0


@dataclass(slots=True)
class MarketWithCount:
    market: Market
    position_count: int = 0


@dataclass(slots=True)
class CategoryRecord:
    category: str
    count: int
    total_volume: Decimal
    active_markets: int


__all__ = ["CategoryRecord", "MarketWithCount", "PageRecord"]
