from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_postgres_urls_use_psycopg_driver():
    settings = Settings(database_url="postgres://user:pw@db.example.com:5432/markets")

    url = settings.resolved_database_url

    assert url.startswith("postgresql+psycopg://user:pw@db.example.com:5432/markets")
    assert "target_session_attrs=read-write" in url


def test_production_refuses_sqlite():
    settings = Settings(environment="production", database_url="sqlite:///./local.db")

    with pytest.raises(ValueError):
        settings.resolved_database_url


def test_cors_origins_accept_comma_separated_string():
    settings = Settings(cors_allow_origins="https://a.example, https://b.example,")

    assert settings.cors_allow_origins == ["https://a.example", "https://b.example"]


def test_log_level_is_normalized():
    assert Settings(log_level=" debug ").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(log_level="chatty")


def test_nonce_entropy_has_a_floor():
    with pytest.raises(ValidationError):
        Settings(nonce_bytes=8)


def test_missing_jwt_secret_is_reported(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    settings = Settings(_env_file=None)

    with pytest.raises(ValueError):
        settings.resolved_jwt_secret
