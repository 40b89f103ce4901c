"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``SAFEPULSE_`` prefix; infrastructure settings use
their canonical environment variable names via ``validation_alias``.
"""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the SafePulse broadcast service.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``SAFEPULSE_``; infra keys use
    their standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="SAFEPULSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"
    cors_origins: str = ""
    metrics_enabled: bool = True

    # ── Redis (empty = in-memory registry) ─────────────────────────────
    redis_url: str = Field(default="", validation_alias="REDIS_URL")

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=3001, validation_alias="API_PORT")

    # ── Rate Limiting ──────────────────────────────────────────────────
    # Per push token on /register and /updateLocation; per caller address on
    # /broadcast.  0 disables a limit.
    rate_limit_per_minute: int = Field(default=120, ge=0, validation_alias="RATE_LIMIT_PER_MINUTE")
    broadcast_rate_limit_per_minute: int = Field(
        default=30,
        ge=0,
        validation_alias="BROADCAST_RATE_LIMIT_PER_MINUTE",
    )
    trusted_proxy_count: int = Field(
        default=1,
        ge=0,
        validation_alias="TRUSTED_PROXY_COUNT",
    )

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Push gateway ───────────────────────────────────────────────────
    push_gateway_url: str = "https://exp.host/--/api/v2/push/send"
    push_access_token: str = ""
    push_batch_size: int = Field(default=100, ge=1, le=100)
    push_timeout_seconds: float = Field(default=10.0, gt=0)
    push_max_concurrency: int = Field(default=4, ge=1)

    # ── Proximity ──────────────────────────────────────────────────────
    default_radius_m: float = Field(default=500.0, gt=0)
    location_max_age_seconds: int | None = Field(default=None, gt=0)  # None = never stale
    grid_cell_degrees: float = Field(default=0.01, gt=0, le=10)

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def location_max_age(self) -> timedelta | None:
        if self.location_max_age_seconds is None:
            return None
        return timedelta(seconds=self.location_max_age_seconds)


# Module-level singleton — import ``settings`` everywhere.
settings = Settings()
