"""Bearer-token dependencies for FastAPI routes."""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .core.config import Settings, get_settings
from .core.errors import InsufficientPrivilege, NotAuthenticated
from .db import get_db
from .models import User
from .services.auth_service import AuthService


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise NotAuthenticated("Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise NotAuthenticated("Invalid authorization format. Use: Bearer <token>")
    return parts[1]


def get_current_user(
    authorization: str | None = Header(None, description="Bearer session token"),
    db: Session = Depends(get_db),
) -> User:
    """Resolve ``Authorization: Bearer <token>`` to the calling user."""

    token = _bearer_token(authorization)
    return AuthService(db).authenticate(token)


def require_admin(
    user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> User:
    """Gate admin routes on the caller's KYC tier."""

    if user.kyc_level < settings.admin_kyc_level:
        raise InsufficientPrivilege("Admin privileges required")
    return user


__all__ = ["get_current_user", "require_admin"]
