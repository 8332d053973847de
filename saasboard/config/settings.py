"""Runtime configuration, read from the environment and an optional ``.env`` file."""

import secrets
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
ENVIRONMENTS = ("development", "staging", "production")
MIN_JWT_SECRET_LENGTH = 16


class Settings(BaseSettings):
    """All settings; each field maps to the upper-cased environment variable."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    environment: str = Field(default="development")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # Identity
    # Unset means a fresh random secret per process; every restart logs everyone out.
    jwt_secret: str = Field(default_factory=lambda: secrets.token_urlsafe(64))
    jwt_algorithm: str = Field(default="HS256")
    access_token_ttl_seconds: int = Field(default=7 * 24 * 3600)
    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000")
    max_request_bytes: int = Field(default=1024 * 1024)

    # Database
    database_url: str = Field(default="sqlite:///./data/saasboard.db")
    auto_migrate: bool = Field(default=True)

    # Upstream model API
    anthropic_api_key: str = Field(default="")
    anthropic_base_url: str = Field(default="https://api.anthropic.com")
    anthropic_version: str = Field(default="2023-06-01")
    chat_model: str = Field(default="claude-sonnet-4-20250514")
    chat_max_tokens: int = Field(default=4096)
    chat_temperature: float = Field(default=0.7)
    # Caps the whole upstream exchange, from connect to the last streamed byte
    upstream_timeout_seconds: float = Field(default=120.0)
    upstream_max_retries: int = Field(default=1)

    # Rate limiting, one fixed window per route class
    auth_rate_limit: int = Field(default=5)
    auth_rate_window_seconds: float = Field(default=60.0)
    dashboard_rate_limit: int = Field(default=60)
    dashboard_rate_window_seconds: float = Field(default=60.0)
    chat_rate_limit: int = Field(default=20)
    chat_rate_window_seconds: float = Field(default=60.0)
    rate_limit_sweep_interval_seconds: float = Field(default=60.0)
    # Key limiters on X-Forwarded-For / X-Real-IP; turn off when no proxy sets them
    trust_proxy_headers: bool = Field(default=True)

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def rate_limits(self) -> dict[str, tuple[int, float]]:
        """``(limit, window_seconds)`` keyed by route class."""
        return {
            "auth": (self.auth_rate_limit, self.auth_rate_window_seconds),
            "dashboard": (self.dashboard_rate_limit, self.dashboard_rate_window_seconds),
            "chat": (self.chat_rate_limit, self.chat_rate_window_seconds),
        }

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        environment = (value or "").strip().lower()
        if environment not in ENVIRONMENTS:
            raise ValueError(f"ENVIRONMENT must be one of {', '.join(ENVIRONMENTS)}")
        return environment

    @field_validator(
        "auth_rate_window_seconds",
        "dashboard_rate_window_seconds",
        "chat_rate_window_seconds",
        "rate_limit_sweep_interval_seconds",
        "upstream_timeout_seconds",
    )
    @classmethod
    def _positive_duration(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Durations must be greater than zero")
        return value

    @model_validator(mode="after")
    def _check_jwt_secret(self) -> "Settings":
        if len(self.jwt_secret) < MIN_JWT_SECRET_LENGTH:
            raise ValueError(f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters")
        return self


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; tests call ``get_settings.cache_clear()`` after changing env."""
    return Settings()
