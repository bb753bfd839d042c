"""Stakes, payout claims, and position reads."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import (
    AlreadyClaimed,
    Conflict,
    InsufficientPrivilege,
    InvalidInput,
    MarketNotFound,
    NotAWinningPosition,
    NotOwner,
    NotSettled,
    PositionNotFound,
    UserNotFound,
)
from app.models import MONEY_MAX, MarketStatus, PositionSide, TransactionType
from app.repositories import (
    LedgerRepository,
    MarketRepository,
    PositionRepository,
    UserRepository,
)
from app.repositories.position_repository import SETTLED_SORT_COLUMNS
from app.schemas import LedgerEntry, MarketSummary, Position, PositionPage, StakeResult


@dataclass(slots=True)
class StakeOrder:
    market_id: str
    side: PositionSide
    amount: Decimal
    stake_tx_hash: str


class TradingService:
    """Apply stakes and claims as single database transactions."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._users = UserRepository(session)
        self._markets = MarketRepository(session)
        self._positions = PositionRepository(session)
        self._ledger = LedgerRepository(session)

    # ------------------------------------------------------------------
    # Stakes

    def place_stake(self, user_id: str, order: StakeOrder) -> StakeResult:
        """Credit a position, its market pool, the user's counters, and the ledger together."""

        amount = order.amount
        side = PositionSide(order.side)

        try:
            market = self._markets.get_market_for_update(order.market_id)
            if market is None:
                raise MarketNotFound()
            if not amount.is_finite() or amount <= 0:
                raise InvalidInput("amount_staked must be a positive amount")
            if not order.stake_tx_hash:
                raise InvalidInput("stake_tx_hash is required")
            if market.status != MarketStatus.ACTIVE.value:
                raise Conflict(f"Market is {market.status.lower()} and not accepting stakes")
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFound()
            if max(market.total_volume, user.total_volume) + amount > MONEY_MAX:
                raise InvalidInput("amount_staked exceeds the largest representable total")

            position = self._positions.find_position_for_update(
                user_id=user_id, market_id=market.id, side=side
            )
            if position is None:
                position = self._positions.create_position(
                    user_id=user_id,
                    market_id=market.id,
                    side=side,
                    amount=amount,
                    stake_tx_hash=order.stake_tx_hash,
                )
            else:
                self._positions.add_stake(position.id, amount, order.stake_tx_hash)

            self._markets.add_to_pool(market.id, side, amount)
            self._users.record_stake(user_id, amount)
            self._ledger.record(
                user_id=user_id,
                entry_type=TransactionType.STAKE,
                amount=amount,
                market_id=market.id,
                position_id=position.id,
                tx_hash=order.stake_tx_hash,
                details={"position_type": side.value},
            )
            self._session.flush()
            self._session.refresh(position)
            self._session.refresh(market)
            result = StakeResult(
                position=Position.model_validate(position),
                market=MarketSummary.model_validate(market),
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "User {} staked {} on {} side {}", user_id, amount, order.market_id, side.value
        )
        return result

    # ------------------------------------------------------------------
    # Claims

    def claim_winnings(self, position_id: str, user_id: str) -> LedgerEntry:
        """Pay a settled winning position's profit exactly once."""

        try:
            position = self._positions.get_position_for_update(position_id)
            if position is None:
                raise PositionNotFound()
            if position.user_id != user_id:
                raise NotOwner("Not authorized to claim winnings for this position")
            if not position.settled:
                raise NotSettled()
            if position.payout_transaction_id is not None:
                raise AlreadyClaimed()
            if not position.is_winner:
                raise NotAWinningPosition()

            payout = self._ledger.record(
                user_id=position.user_id,
                entry_type=TransactionType.PAYOUT,
                amount=position.profit_loss,
                market_id=position.market_id,
                position_id=position.id,
                details={
                    "description": (
                        f"Payout for position {position.id} in market {position.market.question}"
                    ),
                    "position_id": position.id,
                    "market_id": position.market_id,
                    "profit_loss": str(position.profit_loss),
                },
            )
            if not self._positions.attach_payout(position.id, payout.id):
                raise AlreadyClaimed()
            result = LedgerEntry.model_validate(payout)
            self._session.commit()
        except AlreadyClaimed:
            self._session.rollback()
            logger.warning("Duplicate claim rejected for position {}", position_id)
            raise
        except Exception:
            self._session.rollback()
            raise

        logger.info("Paid {} to user {} for position {}", result.amount, user_id, position_id)
        return result

    # ------------------------------------------------------------------
    # Reads

    def ensure_can_view(self, requester_id: str, target_user_id: str) -> None:
        """Allow self, admin-tier, or verified-to-verified access to positions."""

        if requester_id == target_user_id:
            return
        requester = self._users.get(requester_id)
        if requester is None:
            raise UserNotFound("Requesting user not found")
        if requester.kyc_level >= self._settings.admin_kyc_level:
            return
        target = self._users.get(target_user_id)
        if target is None:
            raise UserNotFound()
        if requester.is_verified and target.is_verified:
            return
        raise InsufficientPrivilege("Insufficient permissions to view other user positions")

    def list_positions(
        self, requester_id: str, *, target_user_id: str | None = None, active: bool | None = None
    ) -> list[Position]:
        target = target_user_id or requester_id
        self.ensure_can_view(requester_id, target)
        settled = None if active is None else not active
        return [
            Position.model_validate(item)
            for item in self._positions.list_for_user(target, settled=settled)
        ]

    def get_position(self, requester_id: str, position_id: str) -> Position:
        position = self._positions.get_position(position_id)
        if position is None:
            raise PositionNotFound()
        self.ensure_can_view(requester_id, position.user_id)
        return Position.model_validate(position)

    def position_history(
        self,
        requester_id: str,
        *,
        target_user_id: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "settled_at",
        sort_order: str = "desc",
    ) -> PositionPage:
        if page < 1:
            raise InvalidInput("Page must be a positive number")
        if not 1 <= limit <= 100:
            raise InvalidInput("Limit must be between 1 and 100")
        if sort_by not in SETTLED_SORT_COLUMNS:
            raise InvalidInput("Invalid sort_by parameter")
        if sort_order not in {"asc", "desc"}:
            raise InvalidInput("Sort order must be asc or desc")

        target = target_user_id or requester_id
        self.ensure_can_view(requester_id, target)
        result = self._positions.settled_page(
            target,
            limit=limit,
            offset=(page - 1) * limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return PositionPage(
            data=[Position.model_validate(item) for item in result.items],
            total=result.total,
            page=page,
            limit=limit,
            total_pages=math.ceil(result.total / limit),
        )
