"""Typed inputs shared by the API, services, and repositories."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(slots=True)
class MarketDraft:
    """Fields required to open a new market."""

    question: str
    category: str
    end_time: datetime
    oracle_source: str
    resolution_criteria: str
    description: str | None = None
    oracle_config: dict[str, Any] | None = None
    featured: bool = False
    image_url: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MarketUpdate:
    """Every mutable market attribute; ``None`` leaves the stored value untouched."""

    question: str | None = None
    description: str | None = None
    category: str | None = None
    end_time: datetime | None = None
    oracle_source: str | None = None
    oracle_config: dict[str, Any] | None = None
    resolution_criteria: str | None = None
    featured: bool | None = None
    image_url: str | None = None
    tags: list[str] | None = None

    def changes(self) -> dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass(slots=True)
class ProfileUpdate:
    """Self-service profile edits. An empty ``email`` string clears the address."""

    username: str | None = None
    email: str | None = None

    def is_empty(self) -> bool:
        return self.username is None and self.email is None


@dataclass(slots=True)
class MarketFilters:
    status: str | None = "ACTIVE"
    category: str | None = None
    featured: bool | None = None
    creator_id: str | None = None
    page: int = 1
    limit: int = 20
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(slots=True)
class SettlementSummary:
    """Outcome of resolving a market and settling its positions."""

    market_id: str
    outcome: bool
    settled_positions: int
    winning_positions: int
    total_payout: Decimal
