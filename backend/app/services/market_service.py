"""Market listings, odds, and admin lifecycle operations."""

from __future__ import annotations

import math
from datetime import timedelta
from decimal import ROUND_DOWN, Decimal
from typing import Sequence

from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import Conflict, InvalidInput, MarketNotFound
from app.domain import MarketDraft, MarketFilters, MarketUpdate, SettlementSummary
from app.models import MarketStatus, PositionSide, utcnow
from app.repositories import (
    LedgerRepository,
    MarketRepository,
    MarketWithCount,
    PositionRepository,
    UserRepository,
)
from app.schemas import (
    Market,
    MarketActivity,
    MarketCategory,
    MarketDetail,
    MarketOdds,
    MarketPage,
    MarketPositionBrief,
)

MARKET_SORT_FIELDS = {"created_at", "volume", "end_time"}
MONEY_QUANTUM = Decimal("0.000001")
HALF = Decimal("0.5")


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)


def settlement_amounts(
    *,
    amount_staked: Decimal,
    won: bool,
    total_volume: Decimal,
    winning_pool: Decimal,
) -> tuple[Decimal, Decimal]:
    """Return ``(payout_amount, profit_loss)`` for one position.

    Winners split the whole market volume in proportion to their share of
    the winning pool; losers forfeit their stake.
    """

    if not won or winning_pool <= 0:
        return Decimal("0"), _quantize(-amount_staked)
    payout = _quantize(amount_staked * total_volume / winning_pool)
    return payout, payout - _quantize(amount_staked)


class MarketService:
    """Facade over market persistence used by the public and admin APIs."""

    def __init__(self, session: Session, settings: Settings | None = None):
        self._session = session
        self._settings = settings or get_settings()
        self._market_repo = MarketRepository(session)
        self._position_repo = PositionRepository(session)
        self._ledger_repo = LedgerRepository(session)
        self._user_repo = UserRepository(session)

    # ------------------------------------------------------------------
    # Public reads

    def list_markets(self, filters: MarketFilters) -> MarketPage:
        if filters.page < 1:
            raise InvalidInput("page must be a positive number")
        if not 1 <= filters.limit <= 100:
            raise InvalidInput("limit must be between 1 and 100")
        if filters.sort_by not in MARKET_SORT_FIELDS:
            raise InvalidInput("sort_by must be one of: created_at, volume, end_time")
        if filters.sort_order not in {"asc", "desc"}:
            raise InvalidInput("sort_order must be asc or desc")

        result = self._market_repo.list_markets(filters)
        return MarketPage(
            data=self._normalize_markets(result.items),
            total=result.total,
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(result.total / filters.limit),
        )

    def get_market(self, market_id: str) -> MarketDetail:
        record = self._market_repo.get_market_detail(market_id)
        if record is None:
            raise MarketNotFound()
        recent = self._market_repo.recent_positions(market_id, limit=10)
        payload = MarketDetail.model_validate(record.market)
        return payload.model_copy(
            update={
                "position_count": record.position_count,
                "recent_positions": [MarketPositionBrief.model_validate(item) for item in recent],
            }
        )

    def featured_markets(self, limit: int = 10) -> list[Market]:
        return self._normalize_markets(self._market_repo.featured_markets(limit=limit))

    def trending_markets(self, limit: int = 10) -> list[Market]:
        created_after = utcnow() - timedelta(days=self._settings.trending_window_days)
        records = self._market_repo.trending_markets(
            limit=limit,
            created_after=created_after,
            min_volume=Decimal(self._settings.trending_min_volume),
        )
        return self._normalize_markets(records)

    def market_categories(self) -> list[MarketCategory]:
        return [
            MarketCategory(
                category=record.category,
                count=record.count,
                total_volume=record.total_volume,
                active_markets=record.active_markets,
            )
            for record in self._market_repo.categories()
        ]

    def market_activity(self, market_id: str, limit: int = 50) -> list[MarketActivity]:
        if self._market_repo.get_market(market_id) is None:
            raise MarketNotFound()
        activities: list[MarketActivity] = []
        for entry in self._ledger_repo.for_market(market_id, limit=limit):
            activities.append(
                MarketActivity(
                    id=entry.id,
                    type=entry.type,
                    user_id=entry.user_id,
                    market_id=entry.market_id,
                    amount=entry.amount,
                    timestamp=entry.created_at,
                    details={
                        "transaction_hash": entry.tx_hash,
                        "status": entry.status,
                        "token": entry.token,
                        "position_type": entry.position.position_type if entry.position else None,
                        "user": {
                            "id": entry.user.id,
                            "username": entry.user.username,
                            "wallet_address": entry.user.wallet_address,
                            "is_verified": entry.user.is_verified,
                        },
                    },
                )
            )
        return activities

    def calculate_odds(self, market_id: str) -> MarketOdds:
        market = self._market_repo.get_market(market_id)
        if market is None:
            raise MarketNotFound()
        total = market.total_volume
        if total > 0:
            yes = _quantize(market.yes_pool / total)
            no = Decimal("1") - yes
        else:
            yes = no = HALF
        return MarketOdds(
            market_id=market.id,
            yes=yes,
            no=no,
            yes_pool=market.yes_pool,
            no_pool=market.no_pool,
            total_volume=total,
        )

    # ------------------------------------------------------------------
    # Admin operations

    def admin_list_markets(self) -> list[Market]:
        return self._normalize_markets(self._market_repo.list_all_markets())

    def create_market(self, draft: MarketDraft, *, creator_id: str) -> Market:
        try:
            market = self._market_repo.create_market(draft, creator_id=creator_id)
            payload = Market.model_validate(market)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("Market {} created by {}", payload.id, creator_id)
        return payload

    def update_market(self, market_id: str, update: MarketUpdate) -> Market:
        changes = update.changes()
        if not changes:
            raise InvalidInput("No valid fields provided for update")
        try:
            market = self._market_repo.get_market_for_update(market_id)
            if market is None:
                raise MarketNotFound()
            self._market_repo.apply_changes(market, changes)
            payload = Market.model_validate(market).model_copy(
                update={"position_count": self._market_repo.count_positions(market_id)}
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("Market {} updated: {}", market_id, ", ".join(sorted(changes)))
        return payload

    def cancel_market(self, market_id: str) -> Market:
        try:
            market = self._market_repo.get_market_for_update(market_id)
            if market is None:
                raise MarketNotFound()
            if market.status == MarketStatus.RESOLVED.value:
                raise Conflict("Resolved markets cannot be cancelled")
            if self._market_repo.count_positions(market_id) > 0:
                raise Conflict(
                    "Cannot cancel market with existing positions. "
                    "Consider resolving or refunding positions first."
                )
            market.status = MarketStatus.CANCELLED.value
            self._session.flush()
            payload = Market.model_validate(market)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("Market {} cancelled", market_id)
        return payload

    def resolve_market(self, market_id: str, outcome: bool) -> SettlementSummary:
        """Record the outcome and settle every position on the market."""

        try:
            market = self._market_repo.get_market_for_update(market_id)
            if market is None:
                raise MarketNotFound()
            if market.status != MarketStatus.ACTIVE.value:
                raise Conflict(f"Only active markets can be resolved (status {market.status})")

            market.outcome = outcome
            market.status = MarketStatus.RESOLVED.value
            market.resolved_at = utcnow()

            winning_side = PositionSide.YES if outcome else PositionSide.NO
            winning_pool = market.yes_pool if outcome else market.no_pool
            settled = winners = 0
            total_payout = Decimal("0")
            for position in self._position_repo.list_for_market(market_id):
                won = position.position_type == winning_side.value
                payout, profit_loss = settlement_amounts(
                    amount_staked=position.amount_staked,
                    won=won,
                    total_volume=market.total_volume,
                    winning_pool=winning_pool,
                )
                self._position_repo.settle(position, payout_amount=payout, profit_loss=profit_loss)
                self._user_repo.record_settlement(position.user_id, won=won)
                settled += 1
                if won:
                    winners += 1
                    total_payout += payout
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "Market {} resolved {}: settled {} positions ({} winning)",
            market_id,
            "YES" if outcome else "NO",
            settled,
            winners,
        )
        return SettlementSummary(
            market_id=market_id,
            outcome=outcome,
            settled_positions=settled,
            winning_positions=winners,
            total_payout=total_payout,
        )

    def _normalize_markets(self, records: Sequence[MarketWithCount]) -> list[Market]:
        """Convert ORM rows into API schemas while preserving order."""

        normalized: list[Market] = []
        for record in records:
            payload = Market.model_validate(record.market)
            normalized.append(payload.model_copy(update={"position_count": record.position_count}))
        return normalized
