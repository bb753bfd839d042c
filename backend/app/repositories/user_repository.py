"""User persistence helpers."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.models import Position, User, utcnow


class UserRepository:
    """Encapsulate user lookups and counter updates."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Queries

    def get(self, user_id: str) -> User | None:
        return self._session.get(User, user_id)

    def get_by_wallet(self, wallet_address: str) -> User | None:
        query = select(User).where(User.wallet_address == wallet_address)
        return self._session.execute(query).scalar_one_or_none()

    def leaderboard(self, *, sort_by: str, limit: int, offset: int) -> list[User]:
        order_by = {
            "reputation": [User.reputation_score.desc()],
            "volume": [User.total_volume.desc()],
            "win_rate": [User.win_rate.desc(), User.total_predictions.desc()],
        }.get(sort_by, [User.reputation_score.desc()])

        query = (
            select(User)
            .where(User.total_predictions > 0)
            .order_by(*order_by, User.created_at.asc())
            .limit(limit)
            .offset(offset)
        )
        return list(self._session.execute(query).scalars().all())

    # ------------------------------------------------------------------
    # Mutations

    def create(self, wallet_address: str) -> User:
        user = User(wallet_address=wallet_address)
        self._session.add(user)
        self._session.flush()
        return user

    def record_stake(self, user_id: str, amount: Decimal) -> None:
        self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                total_predictions=User.total_predictions + 1,
                total_volume=User.total_volume + amount,
                last_active=utcnow(),
            )
        )

    def record_settlement(self, user_id: str, *, won: bool) -> None:
        """Count a settled position and recompute ``win_rate`` over settled positions.

        The denominator is the user's settled position count, not
        ``total_predictions``, which counts stake events.
        """
        user = self._session.get(User, user_id)
        if user is None:
            return
        if won:
            user.correct_predictions += 1
        settled = self._session.execute(
            select(func.count(Position.id)).where(
                Position.user_id == user_id, Position.settled.is_(True)
            )
        ).scalar_one()
        if settled:
            ratio = Decimal(user.correct_predictions) / Decimal(settled)
            user.win_rate = min(ratio, Decimal("1")).quantize(Decimal("0.000001"))
