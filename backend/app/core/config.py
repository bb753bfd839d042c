from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme == "postgres":
        scheme = "postgresql"

    if scheme == "postgresql":
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("target_session_attrs", "read-write")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode and SQL echo")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/prediction_market.db",
        description="SQLAlchemy compatible database URL",
    )
    jwt_secret: str | None = Field(
        default=None,
        description="HMAC secret used to sign session tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="Session token signing algorithm")
    jwt_expires_minutes: int = Field(
        default=60 * 24,
        description="Lifetime of an issued session token in minutes",
        ge=1,
    )
    nonce_ttl_seconds: int = Field(
        default=300,
        description="Seconds a wallet login nonce stays valid after issuance",
        ge=1,
    )
    nonce_bytes: int = Field(
        default=16,
        description="Bytes of entropy in each wallet login nonce",
        ge=16,
    )
    admin_kyc_level: int = Field(
        default=3,
        description="Minimum KYC tier allowed to manage markets",
        ge=0,
    )
    cors_allow_origins: list[str] | str = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or array of allowed CORS origins",
    )
    log_level: str = Field(default="INFO", description="Minimum loguru level for the API sink")
    trending_window_days: int = Field(
        default=30,
        description="Markets created within this many days qualify as trending",
        ge=1,
    )
    trending_min_volume: int = Field(
        default=100,
        description="Markets with more volume than this qualify as trending regardless of age",
        ge=0,
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value

        if value.startswith("postgresql+psycopg://") or value.startswith(
            "postgresql+asyncpg://"
        ):
            return value

        normalized = value
        if normalized.startswith("postgres://"):
            normalized = "postgresql://" + normalized[len("postgres://") :]

        return normalized

    @field_validator("cors_allow_origins", mode="after")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item for item in (part.strip() for part in value.split(",")) if item]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        raise ValueError(
            "CORS_ALLOW_ORIGINS must be provided as a list or comma-separated string"
        )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {value}")
        return level

    @property
    def resolved_database_url(self) -> str:
        url = _ensure_sqlalchemy_postgres_scheme(str(self.database_url))
        if self.environment.lower() == "production" and url.startswith("sqlite"):
            raise ValueError("DATABASE_URL must point at PostgreSQL when ENVIRONMENT=production")
        return url

    @property
    def resolved_jwt_secret(self) -> str:
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET must be set to issue or verify session tokens")
        return self.jwt_secret


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
