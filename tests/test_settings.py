"""Tests for settings parsing and derived values."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from config.settings import Settings


def test_defaults() -> None:
    config = Settings()
    assert config.push_gateway_url == "https://exp.host/--/api/v2/push/send"
    assert config.push_batch_size == 100
    assert config.default_radius_m == 500.0
    assert config.location_max_age is None
    assert config.is_production is False


def test_env_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SAFEPULSE_LOCATION_MAX_AGE_SECONDS", "900")
    monkeypatch.setenv("SAFEPULSE_PUSH_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")

    config = Settings()
    assert config.location_max_age == timedelta(minutes=15)
    assert config.push_timeout_seconds == 2.5
    assert config.redis_url == "redis://cache:6379/1"


def test_batch_size_above_gateway_limit_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(push_batch_size=101)


def test_cors_origin_list() -> None:
    config = Settings(cors_origins="https://a.example, https://b.example ,")
    assert config.cors_origin_list == ["https://a.example", "https://b.example"]


def test_rate_limits_accept_zero_and_reject_negative() -> None:
    config = Settings(RATE_LIMIT_PER_MINUTE=0, BROADCAST_RATE_LIMIT_PER_MINUTE=0)
    assert config.rate_limit_per_minute == 0
    assert config.broadcast_rate_limit_per_minute == 0
    with pytest.raises(ValidationError):
        Settings(BROADCAST_RATE_LIMIT_PER_MINUTE=-1)
