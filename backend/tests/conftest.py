from __future__ import annotations

import os
import sys
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("JWT_SECRET", "test-only-session-secret-0123456789abcdef")
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from solders.keypair import Keypair
from sqlalchemy import create_engine, select
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.db import create_session_factory, get_db, init_db
from app.domain import MarketDraft
from app.main import app
from app.models import Market, User
from app.repositories import MarketRepository


def login_message(nonce: str) -> str:
    return f"Sign in to Prediction Market\nNonce: {nonce}"


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    """Test client bound to the in-memory database, one session per request."""

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-only-session-secret-0123456789abcdef",
    )


@pytest.fixture
def keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def login(client) -> Callable[[Keypair], str]:
    """Run the nonce/sign/verify handshake and return a bearer token."""

    def _login(wallet: Keypair) -> str:
        address = str(wallet.pubkey())
        nonce = client.post("/auth/nonce", json={"wallet_address": address}).json()["nonce"]
        message = login_message(nonce)
        signature = wallet.sign_message(message.encode("utf-8"))
        response = client.post(
            "/auth/verify",
            json={"wallet_address": address, "signature": str(signature), "message": message},
        )
        assert response.status_code == 200, response.text
        return response.json()["token"]

    return _login


@pytest.fixture
def admin_headers(login, session_factory) -> dict[str, str]:
    wallet = Keypair()
    token = login(wallet)
    with session_factory() as session:
        user = session.execute(
            select(User).where(User.wallet_address == str(wallet.pubkey()))
        ).scalar_one()
        user.kyc_level = 3
        session.commit()
    return auth_headers(token)


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    def _make_user(**fields) -> User:
        user = User(wallet_address=str(Keypair().pubkey()), **fields)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_market(db_session, make_user) -> Callable[..., Market]:
    def _make_market(creator: User | None = None, **fields) -> Market:
        creator = creator or make_user(kyc_level=3)
        draft = MarketDraft(
            question=fields.pop("question", "Will it rain tomorrow?"),
            category=fields.pop("category", "weather"),
            end_time=fields.pop("end_time", datetime.now(timezone.utc) + timedelta(days=7)),
            oracle_source=fields.pop("oracle_source", "manual"),
            resolution_criteria=fields.pop("resolution_criteria", "Resolves YES on rainfall"),
            **fields,
        )
        market = MarketRepository(db_session).create_market(draft, creator_id=creator.id)
        db_session.commit()
        return market

    return _make_market
