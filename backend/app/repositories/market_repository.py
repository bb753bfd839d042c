"""Market-focused data access helpers."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import asc, desc, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from app.domain import MarketDraft, MarketFilters
from app.models import Market, MarketStatus, Position, PositionSide

from .types import CategoryRecord, MarketWithCount, PageRecord


def _position_count_column():
    return (
        select(func.count(Position.id))
        .where(Position.market_id == Market.id)
        .correlate(Market)
        .scalar_subquery()
        .label("position_count")
    )


class MarketRepository:
    """Encapsulate all market persistence concerns."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def create_market(self, draft: MarketDraft, *, creator_id: str) -> Market:
        market = Market(
            question=draft.question,
            description=draft.description,
            category=draft.category,
            end_time=draft.end_time,
            oracle_source=draft.oracle_source,
            oracle_config=draft.oracle_config,
            resolution_criteria=draft.resolution_criteria,
            featured=draft.featured,
            image_url=draft.image_url,
            tags=list(draft.tags),
            creator_id=creator_id,
            status=MarketStatus.ACTIVE.value,
        )
        self._session.add(market)
        self._session.flush()
        return market

    def apply_changes(self, market: Market, changes: dict[str, Any]) -> Market:
        for name, value in changes.items():
            setattr(market, name, value)
        self._session.flush()
        return market

    def add_to_pool(self, market_id: str, side: PositionSide, amount: Decimal) -> None:
        """Credit one pool and the aggregate volume by the same delta, in SQL."""

        yes_delta = amount if side is PositionSide.YES else Decimal("0")
        no_delta = amount if side is PositionSide.NO else Decimal("0")
        self._session.execute(
            update(Market)
            .where(Market.id == market_id)
            .values(
                yes_pool=Market.yes_pool + yes_delta,
                no_pool=Market.no_pool + no_delta,
                total_volume=Market.total_volume + amount,
            )
        )

    # ------------------------------------------------------------------
    # Queries

    def get_market(self, market_id: str) -> Market | None:
        return self._session.get(Market, market_id)

    def get_market_for_update(self, market_id: str) -> Market | None:
        query = (
            select(Market)
            .where(Market.id == market_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(query).scalar_one_or_none()

    def get_market_detail(self, market_id: str) -> MarketWithCount | None:
        query = (
            select(Market, _position_count_column())
            .options(selectinload(Market.creator))
            .where(Market.id == market_id)
        )
        row = self._session.execute(query).first()
        if row is None:
            return None
        return MarketWithCount(market=row[0], position_count=int(row[1] or 0))

    def count_created_by(self, user_id: str) -> int:
        query = select(func.count(Market.id)).where(Market.creator_id == user_id)
        return int(self._session.execute(query).scalar_one())

    def count_positions(self, market_id: str) -> int:
        query = select(func.count(Position.id)).where(Position.market_id == market_id)
        return int(self._session.execute(query).scalar_one())

    def recent_positions(self, market_id: str, *, limit: int = 10) -> list[Position]:
        query = (
            select(Position)
            .options(selectinload(Position.user))
            .where(Position.market_id == market_id)
            .order_by(Position.created_at.desc())
            .limit(limit)
        )
        return list(self._session.execute(query).scalars().all())

    def list_markets(self, filters: MarketFilters) -> PageRecord[MarketWithCount]:
        conditions: list[Any] = []
        if filters.status:
            conditions.append(Market.status == filters.status)
        if filters.category:
            conditions.append(Market.category == filters.category)
        if filters.featured is not None:
            conditions.append(Market.featured.is_(filters.featured))
        if filters.creator_id:
            conditions.append(Market.creator_id == filters.creator_id)

        sort_column = {
            "volume": Market.total_volume,
            "end_time": Market.end_time,
            "created_at": Market.created_at,
        }.get(filters.sort_by, Market.created_at)
        sort_direction = asc if filters.sort_order.lower() == "asc" else desc

        query = (
            select(Market, _position_count_column())
            .options(selectinload(Market.creator))
            .where(*conditions)
            .order_by(sort_direction(sort_column))
            .limit(filters.limit)
            .offset(filters.offset)
        )
        total_query = select(func.count(Market.id)).where(*conditions)

        rows = self._session.execute(query).all()
        total = self._session.execute(total_query).scalar_one()
        items = [MarketWithCount(market=row[0], position_count=int(row[1] or 0)) for row in rows]
        return PageRecord(items=items, total=int(total))

    def list_all_markets(self) -> list[MarketWithCount]:
        query = (
            select(Market, _position_count_column())
            .options(selectinload(Market.creator))
            .order_by(Market.created_at.desc())
        )
        rows = self._session.execute(query).all()
        return [MarketWithCount(market=row[0], position_count=int(row[1] or 0)) for row in rows]

    def featured_markets(self, *, limit: int) -> list[MarketWithCount]:
        query = (
            select(Market, _position_count_column())
            .options(selectinload(Market.creator))
            .where(Market.featured.is_(True), Market.status == MarketStatus.ACTIVE.value)
            .order_by(Market.total_volume.desc(), Market.created_at.desc())
            .limit(limit)
        )
        rows = self._session.execute(query).all()
        return [MarketWithCount(market=row[0], position_count=int(row[1] or 0)) for row in rows]

    def trending_markets(
        self, *, limit: int, created_after: datetime, min_volume: Decimal
    ) -> list[MarketWithCount]:
        query = (
            select(Market, _position_count_column())
            .options(selectinload(Market.creator))
            .where(
                Market.status == MarketStatus.ACTIVE.value,
                or_(Market.created_at >= created_after, Market.total_volume > min_volume),
            )
            .order_by(Market.total_volume.desc(), Market.created_at.desc())
            .limit(limit)
        )
        rows = self._session.execute(query).all()
        return [MarketWithCount(market=row[0], position_count=int(row[1] or 0)) for row in rows]

    def categories(self) -> list[CategoryRecord]:
        visible = [MarketStatus.ACTIVE.value, MarketStatus.RESOLVED.value]
        totals = self._session.execute(
            select(
                Market.category,
                func.count(Market.id),
                func.coalesce(func.sum(Market.total_volume), 0),
            )
            .where(Market.status.in_(visible))
            .group_by(Market.category)
            .order_by(func.count(Market.id).desc(), Market.category.asc())
        ).all()
        active_counts = dict(
            self._session.execute(
                select(Market.category, func.count(Market.id))
                .where(Market.status == MarketStatus.ACTIVE.value)
                .group_by(Market.category)
            ).all()
        )
        return [
            CategoryRecord(
                category=category,
                count=int(count),
                total_volume=Decimal(str(volume or 0)),
                active_markets=int(active_counts.get(category, 0)),
            )
            for category, count, volume in totals
        ]
