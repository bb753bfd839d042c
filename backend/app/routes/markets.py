"""Public market routes and staking."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..auth import get_current_user
from ..domain import MarketFilters
from ..models import User
from ..services.market_service import MarketService
from ..services.trading_service import StakeOrder, TradingService
from .dependencies import get_market_service, get_trading_service

router = APIRouter(prefix="/markets", tags=["markets"])


def _market_filters(
    *,
    status: Annotated[
        str | None, Query(description="Market status filter; empty for every status")
    ] = "ACTIVE",
    category: Annotated[str | None, Query(description="Category filter")] = None,
    featured: Annotated[bool | None, Query(description="Only featured markets")] = None,
    creator_id: Annotated[str | None, Query(description="Markets opened by this user")] = None,
    page: Annotated[int, Query(description="1-based page number")] = 1,
    limit: Annotated[int, Query(description="Page size (1-100)")] = 20,
    sort_by: Annotated[
        str, Query(description="Field to sort by (created_at|volume|end_time)")
    ] = "created_at",
    sort_order: Annotated[str, Query(description="Sort order (asc|desc)")] = "desc",
) -> MarketFilters:
    """Normalize market listing query parameters."""

    return MarketFilters(
        status=status.upper() if status else None,
        category=category,
        featured=featured,
        creator_id=creator_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order.lower(),
    )


@router.get("", response_model=schemas.MarketPage)
def list_markets(
    *,
    filters: MarketFilters = Depends(_market_filters),
    service: MarketService = Depends(get_market_service),
):
    """List markets with pagination metadata."""

    return service.list_markets(filters)


@router.get("/featured", response_model=list[schemas.Market])
def featured_markets(
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
    service: MarketService = Depends(get_market_service),
):
    return service.featured_markets(limit)


@router.get("/trending", response_model=list[schemas.Market])
def trending_markets(
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
    service: MarketService = Depends(get_market_service),
):
    return service.trending_markets(limit)


@router.get("/categories", response_model=list[schemas.MarketCategory])
def market_categories(service: MarketService = Depends(get_market_service)):
    return service.market_categories()


@router.get("/{market_id}", response_model=schemas.MarketDetail)
def get_market(market_id: str, service: MarketService = Depends(get_market_service)):
    """Retrieve a market with its creator and most recent positions."""

    return service.get_market(market_id)


@router.get("/{market_id}/activity", response_model=list[schemas.MarketActivity])
def market_activity(
    market_id: str,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    service: MarketService = Depends(get_market_service),
):
    return service.market_activity(market_id, limit)


@router.get("/{market_id}/odds", response_model=schemas.MarketOdds)
def market_odds(market_id: str, service: MarketService = Depends(get_market_service)):
    """Implied YES/NO probabilities from the current pools."""

    return service.calculate_odds(market_id)


@router.post(
    "/{market_id}/bet",
    response_model=schemas.StakeResult,
    status_code=201,
)
def place_stake(
    market_id: str,
    payload: schemas.StakeRequest,
    user: User = Depends(get_current_user),
    service: TradingService = Depends(get_trading_service),
):
    """Stake on one side of a market, topping up any existing position on that side."""

    order = StakeOrder(
        market_id=market_id,
        side=payload.position_type,
        amount=payload.amount_staked,
        stake_tx_hash=payload.stake_tx_hash,
    )
    return service.place_stake(user.id, order)
