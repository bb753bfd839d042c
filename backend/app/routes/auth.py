"""Wallet login routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .. import schemas
from ..auth import get_current_user
from ..models import User
from ..services.auth_service import AuthService
from .dependencies import get_auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/nonce", response_model=schemas.NonceResponse)
def request_nonce(
    payload: schemas.NonceRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Issue a single-use challenge for the wallet to sign."""

    issued = service.request_nonce(payload.wallet_address)
    return schemas.NonceResponse(nonce=issued.nonce, expires_at=issued.expires_at)


@router.post("/verify", response_model=schemas.TokenResponse)
def verify_wallet(
    payload: schemas.VerifyRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Exchange a signed challenge for a bearer session token."""

    issued = service.verify_wallet(payload.wallet_address, payload.signature, payload.message)
    return schemas.TokenResponse(token=issued.token, expires_at=issued.expires_at)


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.logout(user.id)
    return schemas.MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=schemas.ProfileWithPositions)
def get_profile(
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Return the caller's profile with their open positions."""

    return service.get_profile(user.id)
