"""User profiles, stats, history, and leaderboard."""

from __future__ import annotations

import re

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, InvalidInput, NotOwner, UserNotFound
from app.domain import ProfileUpdate
from app.repositories import (
    LedgerRepository,
    MarketRepository,
    PositionRepository,
    UserRepository,
)
from app.schemas import (
    LeaderboardEntry,
    LedgerEntry,
    Position,
    UserDetail,
    UserProfile,
    UserStats,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
LEADERBOARD_SORTS = {"reputation", "volume", "win_rate"}


def _check_page(limit: int, offset: int) -> None:
    if not 1 <= limit <= 100:
        raise InvalidInput("Limit must be a number between 1 and 100")
    if offset < 0:
        raise InvalidInput("Offset must be a non-negative number")


class UserService:
    def __init__(self, session: Session) -> None:
        self._session = session
        self._users = UserRepository(session)
        self._markets = MarketRepository(session)
        self._positions = PositionRepository(session)
        self._ledger = LedgerRepository(session)

    def get_user(self, user_id: str) -> UserDetail:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFound()
        return UserDetail(profile=UserProfile.model_validate(user), stats=self.user_stats(user_id))

    def user_stats(self, user_id: str) -> UserStats:
        markets_created = self._markets.count_created_by(user_id)
        streak = 0
        for profit_loss in self._positions.recent_settled_results(user_id):
            if profit_loss <= 0:
                break
            streak += 1
        return UserStats(
            total_markets_created=markets_created,
            active_positions=self._positions.count_active(user_id),
            total_winnings=self._positions.total_winnings(user_id),
            current_streak=streak,
        )

    def update_user(self, requester_id: str, user_id: str, update: ProfileUpdate) -> UserProfile:
        if requester_id != user_id:
            raise NotOwner("You can only update your own profile")
        if update.is_empty():
            raise InvalidInput("No valid fields provided for update")

        changes: dict[str, str | None] = {}
        if update.username is not None:
            username = update.username.strip()
            if not username:
                raise InvalidInput("Username must be a non-empty string")
            if len(username) > 50:
                raise InvalidInput("Username must be 50 characters or less")
            changes["username"] = username
        if update.email is not None:
            email = update.email.strip()
            if len(email) > 255:
                raise InvalidInput("Email must be 255 characters or less")
            if email and not EMAIL_PATTERN.match(email):
                raise InvalidInput("Invalid email format")
            changes["email"] = email or None

        user = self._users.get(user_id)
        if user is None:
            raise UserNotFound()
        try:
            for name, value in changes.items():
                setattr(user, name, value)
            self._session.flush()
            payload = UserProfile.model_validate(user)
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise Conflict("Username or email already exists") from exc
        except Exception:
            self._session.rollback()
            raise
        logger.info("User {} updated profile fields: {}", user_id, ", ".join(sorted(changes)))
        return payload

    def user_positions(self, user_id: str, *, include_settled: bool = True) -> list[Position]:
        if self._users.get(user_id) is None:
            raise UserNotFound()
        settled = None if include_settled else False
        return [
            Position.model_validate(item)
            for item in self._positions.list_for_user(user_id, settled=settled)
        ]

    def transaction_history(self, user_id: str, *, limit: int = 50, offset: int = 0) -> list[LedgerEntry]:
        _check_page(limit, offset)
        if self._users.get(user_id) is None:
            raise UserNotFound()
        return [
            LedgerEntry.model_validate(entry)
            for entry in self._ledger.for_user(user_id, limit=limit, offset=offset)
        ]

    def leaderboard(
        self, *, sort_by: str = "reputation", limit: int = 100, offset: int = 0
    ) -> list[LeaderboardEntry]:
        if sort_by not in LEADERBOARD_SORTS:
            raise InvalidInput("sort_by must be one of: reputation, volume, win_rate")
        _check_page(limit, offset)
        users = self._users.leaderboard(sort_by=sort_by, limit=limit, offset=offset)
        return [
            LeaderboardEntry(
                rank=offset + index + 1,
                id=user.id,
                username=user.username,
                wallet_address=user.wallet_address,
                reputation_score=user.reputation_score,
                total_volume=user.total_volume,
                win_rate=user.win_rate,
                total_predictions=user.total_predictions,
                correct_predictions=user.correct_predictions,
                is_verified=user.is_verified,
            )
            for index, user in enumerate(users)
        ]
