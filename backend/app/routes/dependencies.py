"""Service providers wired to a request-scoped SQLAlchemy session."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..services.auth_service import AuthService
from ..services.market_service import MarketService
from ..services.trading_service import TradingService
from ..services.user_service import UserService


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db)


def get_market_service(db: Session = Depends(get_db)) -> MarketService:
    return MarketService(db)


def get_trading_service(db: Session = Depends(get_db)) -> TradingService:
    return TradingService(db)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)
