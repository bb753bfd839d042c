"""Wallet login: nonce challenges, signature checks, and session tokens."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import jwt
from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import (
    Internal,
    InvalidInput,
    InvalidOrExpiredToken,
    InvalidSignature,
    NonceExpired,
    UserNotFound,
)
from app.models import User, ensure_utc, utcnow
from app.repositories import PositionRepository, UserRepository
from app.schemas import Position, ProfileWithPositions

from .wallet import is_valid_wallet_address, verify_wallet_signature


@dataclass(slots=True)
class IssuedNonce:
    nonce: str
    expires_at: datetime


@dataclass(slots=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenCodec:
    """Sign and verify stateless session tokens carrying the user id in ``sub``."""

    def __init__(self, settings: Settings, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._settings = settings
        self._clock = clock

    def _secret(self) -> str:
        try:
            return self._settings.resolved_jwt_secret
        except ValueError as exc:
            raise Internal(str(exc)) from exc

    def issue(self, user_id: str) -> IssuedToken:
        issued_at = self._clock()
        expires_at = issued_at + timedelta(minutes=self._settings.jwt_expires_minutes)
        payload = {"sub": user_id, "iat": issued_at, "exp": expires_at}
        token = jwt.encode(payload, self._secret(), algorithm=self._settings.jwt_algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def decode(self, token: str) -> str:
        """Return the token subject. Expiry is judged by the codec clock."""
        try:
            payload = jwt.decode(
                token,
                self._secret(),
                algorithms=[self._settings.jwt_algorithm],
                options={"require": ["sub", "exp"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.PyJWTError as exc:
            logger.warning("Session token rejected: {}", exc)
            raise InvalidOrExpiredToken() from exc
        expires_at = payload.get("exp")
        if not isinstance(expires_at, (int, float)) or expires_at <= self._clock().timestamp():
            logger.warning("Session token rejected: expired")
            raise InvalidOrExpiredToken()
        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidOrExpiredToken()
        return user_id


class AuthService:
    """Issue login challenges and exchange signed challenges for session tokens."""

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._clock = clock
        self._users = UserRepository(session)
        self._positions = PositionRepository(session)
        self._tokens = TokenCodec(self._settings, clock=clock)

    def request_nonce(self, wallet_address: str) -> IssuedNonce:
        wallet_address = wallet_address.strip()
        if not is_valid_wallet_address(wallet_address):
            raise InvalidInput("wallet_address must be a base58 encoded public key")

        now = self._clock()
        nonce = secrets.token_hex(self._settings.nonce_bytes)
        expires_at = now + timedelta(seconds=self._settings.nonce_ttl_seconds)

        try:
            user = self._users.get_by_wallet(wallet_address)
            if user is None:
                user = self._users.create(wallet_address)
                logger.info("Registered new wallet {}", wallet_address)
            user.nonce = nonce
            user.nonce_expires = expires_at
            user.last_active = now
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        return IssuedNonce(nonce=nonce, expires_at=expires_at)

    def verify_wallet(self, wallet_address: str, signature: str, message: str) -> IssuedToken:
        user = self._users.get_by_wallet(wallet_address.strip())
        if user is None:
            raise UserNotFound()

        now = self._clock()
        expires = ensure_utc(user.nonce_expires)
        if not user.nonce or expires is None or expires < now:
            raise NonceExpired()

        if user.nonce not in message:
            logger.warning("Signed message for {} does not carry the issued nonce", user.wallet_address)
            raise InvalidSignature()

        if not verify_wallet_signature(user.wallet_address, signature, message):
            logger.warning("Invalid wallet signature for {}", user.wallet_address)
            raise InvalidSignature()

        token = self._tokens.issue(user.id)
        try:
            # Burn the nonce so a captured signature cannot be replayed.
            user.nonce = None
            user.nonce_expires = None
            user.last_active = now
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("Wallet {} authenticated", user.wallet_address)
        return token

    def logout(self, user_id: str) -> None:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFound()
        try:
            user.nonce = None
            user.nonce_expires = None
            user.last_active = self._clock()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    def get_profile(self, user_id: str) -> ProfileWithPositions:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFound()
        try:
            user.last_active = self._clock()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        open_positions = self._positions.list_for_user(user_id, settled=False)
        profile = ProfileWithPositions.model_validate(user)
        return profile.model_copy(
            update={"positions": [Position.model_validate(item) for item in open_positions]}
        )

    def authenticate(self, token: str) -> User:
        """Resolve a bearer token to a live user."""

        user_id = self._tokens.decode(token)
        user = self._users.get(user_id)
        if user is None:
            raise InvalidOrExpiredToken("User not found")
        return user
