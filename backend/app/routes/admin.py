"""Admin-tier market lifecycle routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from .. import schemas
from ..auth import require_admin
from ..domain import MarketDraft, MarketUpdate
from ..models import User
from ..services.market_service import MarketService
from .dependencies import get_market_service

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/markets", response_model=list[schemas.Market])
def admin_list_markets(service: MarketService = Depends(get_market_service)):
    """Every market regardless of status, newest first."""

    return service.admin_list_markets()


@router.post("/markets", response_model=schemas.Market, status_code=status.HTTP_201_CREATED)
def create_market(
    payload: schemas.MarketCreateRequest,
    admin: User = Depends(require_admin),
    service: MarketService = Depends(get_market_service),
):
    draft = MarketDraft(**payload.model_dump())
    return service.create_market(draft, creator_id=admin.id)


@router.put("/markets/{market_id}", response_model=schemas.Market)
def update_market(
    market_id: str,
    payload: schemas.MarketUpdateRequest,
    service: MarketService = Depends(get_market_service),
):
    return service.update_market(market_id, MarketUpdate(**payload.model_dump()))


@router.delete("/markets/{market_id}", response_model=schemas.Market)
def cancel_market(market_id: str, service: MarketService = Depends(get_market_service)):
    """Cancel a market that has not attracted any positions."""

    return service.cancel_market(market_id)


@router.post("/markets/{market_id}/resolve", response_model=schemas.SettlementResult)
def resolve_market(
    market_id: str,
    payload: schemas.ResolveMarketRequest,
    service: MarketService = Depends(get_market_service),
):
    """Record the outcome and settle every position on the market."""

    summary = service.resolve_market(market_id, payload.outcome)
    return schemas.SettlementResult(
        market_id=summary.market_id,
        outcome=summary.outcome,
        settled_positions=summary.settled_positions,
        winning_positions=summary.winning_positions,
        total_payout=summary.total_payout,
    )
