from __future__ import annotations

from sqlalchemy.orm import Session

from app.core.errors import UserNotFound
from app.domain import SettlementSummary
from app.repositories import UserRepository
from app.services.market_service import MarketService

from .models import Market, User


def get_market(session: Session, market_id: str) -> Market | None:
    return session.get(Market, market_id)


def resolve_market(session: Session, market_id: str, outcome: bool) -> SettlementSummary:
    return MarketService(session).resolve_market(market_id, outcome)


def set_kyc_level(session: Session, wallet_address: str, kyc_level: int) -> User:
    user = UserRepository(session).get_by_wallet(wallet_address)
    if user is None:
        raise UserNotFound()
    user.kyc_level = kyc_level
    session.flush()
    return user
