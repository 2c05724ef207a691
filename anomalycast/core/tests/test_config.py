"""Tests for application configuration."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from anomalycast.core.config import Settings, get_settings


def test_settings_has_defaults():
    """Settings should have sensible defaults."""
    settings = Settings()

    assert settings.app_name == "AnomalyCast"
    assert settings.app_env == "development"
    assert settings.debug is False
    assert settings.log_level == "INFO"
    assert settings.log_format == "json"
    assert settings.api_port == 8123


def test_forecast_defaults():
    """Forecast settings default to 1d horizon, 56d max and 14d retention."""
    settings = Settings()

    assert settings.forecast_store_backend == "memory"
    assert settings.forecast_default_duration == timedelta(days=1)
    assert settings.forecast_max_duration == timedelta(days=56)
    assert settings.forecast_default_expiry == timedelta(days=14)
    assert settings.forecast_poll_interval == timedelta(milliseconds=100)
    assert settings.forecast_wait_timeout == timedelta(seconds=30)
    assert settings.forecast_reaper_enabled is True
    assert settings.forecast_reaper_interval == timedelta(minutes=5)


def test_settings_is_development_property():
    """is_development should return True for development env."""
    settings = Settings(app_env="development")
    assert settings.is_development is True
    assert settings.is_production is False


def test_settings_is_production_property():
    """is_production should return True for production env."""
    settings = Settings(app_env="production")
    assert settings.is_development is False
    assert settings.is_production is True


def test_get_settings_returns_singleton():
    """get_settings should return cached singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2


def test_settings_from_environment(monkeypatch):
    """Settings should load from environment variables."""
    monkeypatch.setenv("APP_NAME", "TestApp")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("FORECAST_DEFAULT_EXPIRY", "7d")
    monkeypatch.setenv("FORECAST_STORE_BACKEND", "database")

    # Create new settings instance (not cached)
    settings = Settings()

    assert settings.app_name == "TestApp"
    assert settings.debug is True
    assert settings.log_level == "DEBUG"
    assert settings.forecast_default_expiry == timedelta(days=7)
    assert settings.forecast_store_backend == "database"


def test_compact_durations_parsed():
    settings = Settings(forecast_poll_interval="250ms", forecast_reaper_interval="1h")

    assert settings.forecast_poll_interval == timedelta(milliseconds=250)
    assert settings.forecast_reaper_interval == timedelta(hours=1)


@pytest.mark.parametrize("field", ["forecast_poll_interval", "forecast_reaper_interval"])
def test_intervals_must_be_positive(field):
    with pytest.raises(ValidationError, match="must be positive"):
        Settings(**{field: "0"})


def test_malformed_duration_rejected():
    with pytest.raises(ValidationError):
        Settings(forecast_max_duration="eight weeks")
