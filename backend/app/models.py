from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

ZERO = Decimal("0")


class FixedDecimal(TypeDecorator):
    """Exact fixed-point column read back as ``Decimal``.

    Postgres stores ``NUMERIC(precision, scale)``. SQLite has no exact decimal
    storage, so values are kept as integers scaled by ``10 ** scale`` and SQL-side
    arithmetic stays integral. Values outside the 64-bit range are refused.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int, scale: int) -> None:
        super().__init__(precision, scale)
        self.precision = precision
        self.scale = scale
        self.quantum = Decimal(1).scaleb(-scale)

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(BigInteger())
        return dialect.type_descriptor(Numeric(self.precision, self.scale))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        units = int(Decimal(value).scaleb(self.scale).to_integral_value(rounding=ROUND_DOWN))
        if not SQLITE_INT_MIN <= units <= SQLITE_INT_MAX:
            raise ValueError(f"{value} is outside the storable range")
        return units

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name != "sqlite":
            return Decimal(value)
        if isinstance(value, float):
            # SQLite promotes an overflowing integer sum to REAL.
            raise ValueError(f"fixed-point column overflowed to {value!r}")
        return Decimal(value).scaleb(-self.scale).quantize(self.quantum)


SQLITE_INT_MAX = 2**63 - 1
SQLITE_INT_MIN = -(2**63)

# Monetary columns: 20 digits with 6 decimal places.
Money = FixedDecimal(20, 6)
# Largest amount every supported backend holds exactly.
MONEY_MAX = Decimal(SQLITE_INT_MAX).scaleb(-6)


class MarketStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


class PositionSide(str, Enum):
    YES = "YES"
    NO = "NO"


class TransactionType(str, Enum):
    STAKE = "STAKE"
    PAYOUT = "PAYOUT"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on round-trip; treat naive timestamps as UTC."""

    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    wallet_address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    username: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    reputation_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_volume: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    win_rate: Mapped[Decimal] = mapped_column(FixedDecimal(7, 6), nullable=False, default=ZERO)
    total_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    kyc_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    referral_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    referred_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    nonce: Mapped[str | None] = mapped_column(String(128), nullable=True)
    nonce_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    positions: Mapped[list["Position"]] = relationship("Position", back_populates="user")
    created_markets: Mapped[list["Market"]] = relationship("Market", back_populates="creator")


class Market(Base):
    __tablename__ = "markets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=MarketStatus.ACTIVE.value, index=True
    )
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    yes_pool: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    no_pool: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_volume: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    outcome: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    creator_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    oracle_source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    oracle_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    resolution_criteria: Mapped[str | None] = mapped_column(Text, nullable=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    creator: Mapped[User | None] = relationship("User", back_populates="created_markets")
    positions: Mapped[list["Position"]] = relationship("Position", back_populates="market")


class Position(Base):
    __tablename__ = "positions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    market_id: Mapped[str] = mapped_column(String(36), ForeignKey("markets.id"), nullable=False, index=True)
    position_type: Mapped[str] = mapped_column(String(3), nullable=False)
    amount_staked: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    shares_owned: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    average_price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    settled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payout_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    profit_loss: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    stake_tx_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # References transactions.id; kept without a FK so the two tables do not form a cycle.
    payout_transaction_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user: Mapped[User] = relationship("User", back_populates="positions")
    market: Mapped[Market] = relationship("Market", back_populates="positions")

    __table_args__ = (
        UniqueConstraint("user_id", "market_id", "position_type", name="uq_position_scope"),
    )

    @property
    def is_winner(self) -> bool:
        outcome = self.market.outcome if self.market is not None else None
        if outcome is None:
            return False
        return outcome == (self.position_type == PositionSide.YES.value)


class LedgerEntry(Base):
    """Insert-only record of a stake or payout."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    market_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("markets.id"), nullable=True, index=True
    )
    position_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("positions.id"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    token: Mapped[str] = mapped_column(String(16), nullable=False, default="SOL")
    tx_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.COMPLETED.value
    )
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[User] = relationship("User")
    market: Mapped[Market | None] = relationship("Market")
    position: Mapped[Position | None] = relationship("Position")
