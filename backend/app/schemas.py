from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .models import PositionSide


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# ----------------------------------------------------------------------
# Auth


class NonceRequest(BaseModel):
    wallet_address: str = Field(min_length=1, max_length=64)


class NonceResponse(BaseModel):
    nonce: str
    expires_at: datetime


class VerifyRequest(BaseModel):
    wallet_address: str = Field(min_length=1, max_length=64)
    signature: str = Field(min_length=1, description="Base58-encoded ed25519 signature")
    message: str = Field(min_length=1, description="Signed challenge containing the nonce")


class TokenResponse(BaseModel):
    success: bool = True
    message: str = "Wallet verified successfully"
    token: str
    token_type: str = "bearer"
    expires_at: datetime


# ----------------------------------------------------------------------
# Users


class UserSummary(BaseModel):
    id: str
    username: str | None = None
    wallet_address: str
    is_verified: bool

    model_config = {"from_attributes": True}


class UserProfile(UserSummary):
    email: str | None = None
    reputation_score: int
    total_volume: Decimal
    win_rate: Decimal
    total_predictions: int
    correct_predictions: int
    kyc_level: int
    referral_code: str | None = None
    referred_by: str | None = None
    created_at: datetime
    updated_at: datetime


class UserStats(BaseModel):
    total_markets_created: int
    active_positions: int
    total_winnings: Decimal
    current_streak: int


class UserDetail(BaseModel):
    profile: UserProfile
    stats: UserStats


class ProfileUpdateRequest(BaseModel):
    username: str | None = None
    email: str | None = None


class LeaderboardEntry(BaseModel):
    rank: int
    id: str
    username: str | None = None
    wallet_address: str
    reputation_score: int
    total_volume: Decimal
    win_rate: Decimal
    total_predictions: int
    correct_predictions: int
    is_verified: bool


# ----------------------------------------------------------------------
# Markets


class MarketSummary(BaseModel):
    id: str
    question: str
    category: str
    status: str
    end_time: datetime
    outcome: bool | None = None
    total_volume: Decimal
    yes_pool: Decimal
    no_pool: Decimal

    model_config = {"from_attributes": True}


class Market(MarketSummary):
    description: str | None = None
    creator_id: str | None = None
    oracle_source: str | None = None
    oracle_config: dict[str, Any] | None = None
    resolution_criteria: str | None = None
    featured: bool
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None
    creator: UserSummary | None = None
    position_count: int = 0

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> list[str]:
        if value is None:
            return []
        return list(value)


class MarketPositionBrief(BaseModel):
    id: str
    position_type: str
    amount_staked: Decimal
    shares_owned: Decimal
    user: UserSummary

    model_config = {"from_attributes": True}


class MarketDetail(Market):
    recent_positions: list[MarketPositionBrief] = Field(default_factory=list)


class MarketPage(BaseModel):
    data: list[Market]
    total: int
    page: int
    limit: int
    total_pages: int


class MarketCategory(BaseModel):
    category: str
    count: int
    total_volume: Decimal
    active_markets: int


class MarketOdds(BaseModel):
    market_id: str
    yes: Decimal
    no: Decimal
    yes_pool: Decimal
    no_pool: Decimal
    total_volume: Decimal


class MarketActivity(BaseModel):
    id: str
    type: str
    user_id: str
    market_id: str | None = None
    amount: Decimal
    timestamp: datetime
    details: dict[str, Any] = Field(default_factory=dict)


class MarketCreateRequest(BaseModel):
    question: str = Field(min_length=1)
    description: str | None = None
    category: str = Field(min_length=1, max_length=64)
    end_time: datetime
    oracle_source: str = Field(min_length=1, max_length=64)
    oracle_config: dict[str, Any] | None = None
    resolution_criteria: str = Field(min_length=1)
    featured: bool = False
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)


class MarketUpdateRequest(BaseModel):
    model_config = {"extra": "forbid"}

    question: str | None = Field(default=None, min_length=1)
    description: str | None = None
    category: str | None = Field(default=None, min_length=1, max_length=64)
    end_time: datetime | None = None
    oracle_source: str | None = Field(default=None, min_length=1, max_length=64)
    oracle_config: dict[str, Any] | None = None
    resolution_criteria: str | None = Field(default=None, min_length=1)
    featured: bool | None = None
    image_url: str | None = None
    tags: list[str] | None = None


class ResolveMarketRequest(BaseModel):
    outcome: bool


class SettlementResult(BaseModel):
    market_id: str
    outcome: bool
    settled_positions: int
    winning_positions: int
    total_payout: Decimal


# ----------------------------------------------------------------------
# Positions & ledger


class StakeRequest(BaseModel):
    position_type: PositionSide
    amount_staked: Decimal = Field(max_digits=20, decimal_places=6)
    stake_tx_hash: str = Field(min_length=1, max_length=128)


class Position(BaseModel):
    id: str
    user_id: str
    market_id: str
    position_type: str
    amount_staked: Decimal
    shares_owned: Decimal
    average_price: Decimal
    settled: bool
    settled_at: datetime | None = None
    payout_amount: Decimal
    profit_loss: Decimal
    stake_tx_hash: str | None = None
    payout_transaction_id: str | None = None
    created_at: datetime
    market: MarketSummary | None = None

    model_config = {"from_attributes": True}


class StakeResult(BaseModel):
    position: Position
    market: MarketSummary


class PositionPage(BaseModel):
    data: list[Position]
    total: int
    page: int
    limit: int
    total_pages: int


class LedgerEntry(BaseModel):
    id: str
    type: str
    amount: Decimal
    token: str
    tx_hash: str | None = None
    status: str
    created_at: datetime
    confirmed_at: datetime | None = None
    market_id: str | None = None
    position_id: str | None = None

    model_config = {"from_attributes": True}


class ProfileWithPositions(UserProfile):
    positions: list[Position] = Field(default_factory=list)
