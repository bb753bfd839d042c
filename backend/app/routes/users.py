"""User profile, history, and leaderboard routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..auth import get_current_user
from ..domain import ProfileUpdate
from ..models import User
from ..services.user_service import UserService
from .dependencies import get_user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/leaderboard", response_model=list[schemas.LeaderboardEntry])
def leaderboard(
    sort_by: Annotated[str, Query(description="reputation|volume|win_rate")] = "reputation",
    limit: int = 100,
    offset: int = 0,
    service: UserService = Depends(get_user_service),
):
    return service.leaderboard(sort_by=sort_by, limit=limit, offset=offset)


@router.get("/{user_id}", response_model=schemas.UserDetail)
def get_user(user_id: str, service: UserService = Depends(get_user_service)):
    """Public profile with aggregate trading stats."""

    return service.get_user(user_id)


@router.put("/{user_id}", response_model=schemas.UserProfile)
def update_user(
    user_id: str,
    payload: schemas.ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    update = ProfileUpdate(username=payload.username, email=payload.email)
    return service.update_user(user.id, user_id, update)


@router.get("/{user_id}/positions", response_model=list[schemas.Position])
def user_positions(
    user_id: str,
    include_settled: bool = True,
    service: UserService = Depends(get_user_service),
):
    return service.user_positions(user_id, include_settled=include_settled)


@router.get("/{user_id}/history", response_model=list[schemas.LedgerEntry])
def transaction_history(
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    service: UserService = Depends(get_user_service),
):
    return service.transaction_history(user_id, limit=limit, offset=offset)
