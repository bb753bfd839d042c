"""Position ledger persistence helpers."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import asc, desc, func, select, update
from sqlalchemy.orm import Session, selectinload

from app.models import Position, PositionSide, utcnow

from .types import PageRecord

SETTLED_SORT_COLUMNS = {
    "settled_at": Position.settled_at,
    "profit_loss": Position.profit_loss,
    "amount_staked": Position.amount_staked,
}


class PositionRepository:
    """Encapsulate reads and writes against the positions table."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def create_position(
        self,
        *,
        user_id: str,
        market_id: str,
        side: PositionSide,
        amount: Decimal,
        stake_tx_hash: str | None,
    ) -> Position:
        position = Position(
            user_id=user_id,
            market_id=market_id,
            position_type=side.value,
            amount_staked=amount,
            shares_owned=Decimal("0"),
            average_price=Decimal("0"),
            stake_tx_hash=stake_tx_hash,
        )
        self._session.add(position)
        self._session.flush()
        return position

    def add_stake(self, position_id: str, amount: Decimal, stake_tx_hash: str | None) -> None:
        self._session.execute(
            update(Position)
            .where(Position.id == position_id)
            .values(
                amount_staked=Position.amount_staked + amount,
                stake_tx_hash=stake_tx_hash,
                updated_at=utcnow(),
            )
        )

    def settle(
        self,
        position: Position,
        *,
        payout_amount: Decimal,
        profit_loss: Decimal,
    ) -> None:
        position.settled = True
        position.settled_at = utcnow()
        position.payout_amount = payout_amount
        position.profit_loss = profit_loss

    def attach_payout(self, position_id: str, payout_id: str) -> bool:
        """Set the payout reference only if none is recorded yet.

        Returns ``False`` when another claim already attached a payout.
        """

        result = self._session.execute(
            update(Position)
            .where(Position.id == position_id, Position.payout_transaction_id.is_(None))
            .values(payout_transaction_id=payout_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Queries

    def get_position(self, position_id: str) -> Position | None:
        query = (
            select(Position)
            .options(selectinload(Position.market), selectinload(Position.user))
            .where(Position.id == position_id)
        )
        return self._session.execute(query).scalar_one_or_none()

    def get_position_for_update(self, position_id: str) -> Position | None:
        query = (
            select(Position)
            .options(selectinload(Position.market))
            .where(Position.id == position_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(query).scalar_one_or_none()

    def find_position_for_update(
        self, *, user_id: str, market_id: str, side: PositionSide
    ) -> Position | None:
        query = (
            select(Position)
            .where(
                Position.user_id == user_id,
                Position.market_id == market_id,
                Position.position_type == side.value,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(query).scalar_one_or_none()

    def list_for_market(self, market_id: str) -> list[Position]:
        query = (
            select(Position)
            .where(Position.market_id == market_id)
            .order_by(Position.created_at.asc())
            .with_for_update()
        )
        return list(self._session.execute(query).scalars().all())

    def list_for_user(self, user_id: str, *, settled: bool | None = None) -> list[Position]:
        conditions: list[Any] = [Position.user_id == user_id]
        if settled is not None:
            conditions.append(Position.settled.is_(settled))
        query = (
            select(Position)
            .options(selectinload(Position.market), selectinload(Position.user))
            .where(*conditions)
            .order_by(Position.created_at.desc())
        )
        return list(self._session.execute(query).scalars().all())

    def settled_page(
        self,
        user_id: str,
        *,
        limit: int,
        offset: int,
        sort_by: str = "settled_at",
        sort_order: str = "desc",
    ) -> PageRecord[Position]:
        conditions = [Position.user_id == user_id, Position.settled.is_(True)]
        sort_column = SETTLED_SORT_COLUMNS.get(sort_by, Position.settled_at)
        sort_direction = asc if sort_order.lower() == "asc" else desc

        query = (
            select(Position)
            .options(selectinload(Position.market), selectinload(Position.user))
            .where(*conditions)
            .order_by(sort_direction(sort_column), Position.id.asc())
            .limit(limit)
            .offset(offset)
        )
        total_query = select(func.count(Position.id)).where(*conditions)

        items = list(self._session.execute(query).scalars().all())
        total = self._session.execute(total_query).scalar_one()
        return PageRecord(items=items, total=int(total))

    def count_active(self, user_id: str) -> int:
        query = select(func.count(Position.id)).where(
            Position.user_id == user_id, Position.settled.is_(False)
        )
        return int(self._session.execute(query).scalar_one())

    def total_winnings(self, user_id: str) -> Decimal:
        query = select(func.coalesce(func.sum(Position.profit_loss), 0)).where(
            Position.user_id == user_id,
            Position.settled.is_(True),
            Position.profit_loss > 0,
        )
        return Decimal(str(self._session.execute(query).scalar_one()))

    def recent_settled_results(self, user_id: str, *, limit: int = 50) -> list[Decimal]:
        query = (
            select(Position.profit_loss)
            .where(Position.user_id == user_id, Position.settled.is_(True))
            .order_by(Position.settled_at.desc(), Position.id.asc())
            .limit(limit)
        )
        return [Decimal(str(value)) for value in self._session.execute(query).scalars().all()]
