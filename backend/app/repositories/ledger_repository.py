"""Insert-only ledger of stakes and payouts."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.models import LedgerEntry, TransactionStatus, TransactionType, utcnow


class LedgerRepository:
    """Append ledger entries and read them back for activity feeds."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def record(
        self,
        *,
        user_id: str,
        entry_type: TransactionType,
        amount: Decimal,
        market_id: str | None = None,
        position_id: str | None = None,
        tx_hash: str | None = None,
        details: dict[str, Any] | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
    ) -> LedgerEntry:
        now = utcnow()
        entry = LedgerEntry(
            user_id=user_id,
            market_id=market_id,
            position_id=position_id,
            type=entry_type.value,
            amount=amount,
            tx_hash=tx_hash,
            status=status.value,
            details=details,
            created_at=now,
            confirmed_at=now if status is TransactionStatus.COMPLETED else None,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def for_market(self, market_id: str, *, limit: int = 50) -> list[LedgerEntry]:
        query = (
            select(LedgerEntry)
            .options(selectinload(LedgerEntry.user), selectinload(LedgerEntry.position))
            .where(LedgerEntry.market_id == market_id)
            .order_by(LedgerEntry.created_at.desc())
            .limit(limit)
        )
        return list(self._session.execute(query).scalars().all())

    def for_user(self, user_id: str, *, limit: int = 50, offset: int = 0) -> list[LedgerEntry]:
        query = (
            select(LedgerEntry)
            .options(selectinload(LedgerEntry.market), selectinload(LedgerEntry.position))
            .where(LedgerEntry.user_id == user_id)
            .order_by(LedgerEntry.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self._session.execute(query).scalars().all())
