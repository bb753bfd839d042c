"""Position reads and payout claims for the authenticated user."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..auth import get_current_user
from ..models import User
from ..services.trading_service import TradingService
from .dependencies import get_trading_service

router = APIRouter(prefix="/positions", tags=["positions"])


@router.get("", response_model=list[schemas.Position])
def list_positions(
    user_id: Annotated[str | None, Query(description="Owner to list; defaults to the caller")] = None,
    active: Annotated[bool | None, Query(description="Only open (true) or settled (false)")] = None,
    user: User = Depends(get_current_user),
    service: TradingService = Depends(get_trading_service),
):
    return service.list_positions(user.id, target_user_id=user_id, active=active)


@router.get("/history", response_model=schemas.PositionPage)
def position_history(
    user_id: Annotated[str | None, Query()] = None,
    page: int = 1,
    limit: int = 20,
    sort_by: Annotated[
        str, Query(description="settled_at|profit_loss|amount_staked")
    ] = "settled_at",
    sort_order: str = "desc",
    user: User = Depends(get_current_user),
    service: TradingService = Depends(get_trading_service),
):
    """Settled positions, paginated."""

    return service.position_history(
        user.id,
        target_user_id=user_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order.lower(),
    )


@router.get("/{position_id}", response_model=schemas.Position)
def get_position(
    position_id: str,
    user: User = Depends(get_current_user),
    service: TradingService = Depends(get_trading_service),
):
    return service.get_position(user.id, position_id)


@router.post("/{position_id}/claim", response_model=schemas.LedgerEntry)
def claim_winnings(
    position_id: str,
    user: User = Depends(get_current_user),
    service: TradingService = Depends(get_trading_service),
):
    """Pay out a settled winning position. Each position pays at most once."""

    return service.claim_winnings(position_id, user.id)
