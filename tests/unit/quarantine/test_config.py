"""
Tests for configuration management in `quarantine/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Optional quarantine durations (unset stays absent)
- Engine, reminder and storage overrides
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from pydantic import ValidationError

from quarantine.config import (
    AppConfig,
    EngineConfig,
    LoggingConfig,
    StorageConfig,
    get_config,
    load_config_from_env,
)
from quarantine.domain.models import QuarantineConfiguration
from quarantine.observability import configure_logging

DURATION_VARS = (
    "RED_WARNING_QUARANTINE_HOURS",
    "YELLOW_WARNING_QUARANTINE_HOURS",
    "SELF_DIAGNOSED_QUARANTINE_HOURS",
)


@pytest.fixture(autouse=True)
def clear_config_cache(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Ensure get_config cache and duration overrides don't leak between tests."""
    for name in (*DURATION_VARS, "STATUS_DEBOUNCE_MS", "EVENT_STORE_PATH"):
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.engine.debounce_ms == 50
    assert config.reminders.self_retest_interval_hours == 6.0
    assert config.storage.path is None


def test_unset_durations_stay_absent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")

    config = load_config_from_env()

    assert config.quarantine == QuarantineConfiguration()
    assert config.logging.format == "json"


def test_duration_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RED_WARNING_QUARANTINE_HOURS", "240")
    monkeypatch.setenv("YELLOW_WARNING_QUARANTINE_HOURS", "")
    monkeypatch.setenv("SELF_DIAGNOSED_QUARANTINE_HOURS", "72")

    config = load_config_from_env()

    assert config.quarantine.red_warning_quarantine_hours == 240
    assert config.quarantine.yellow_warning_quarantine_hours is None
    assert config.quarantine.self_diagnosed_quarantine_hours == 72


def test_non_positive_duration_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RED_WARNING_QUARANTINE_HOURS", "0")

    with pytest.raises(ValidationError):
        load_config_from_env()


def test_engine_and_storage_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STATUS_DEBOUNCE_MS", "120")
    monkeypatch.setenv("SELF_RETEST_INTERVAL_HOURS", "3")
    monkeypatch.setenv("EVENT_STORE_PATH", "/tmp/quarantine.json")

    config = load_config_from_env()

    assert config.engine.debounce_ms == 120
    assert config.reminders.self_retest_interval_hours == 3.0
    assert config.storage.path == "/tmp/quarantine.json"


def test_blank_storage_path_means_memory() -> None:
    assert StorageConfig(path="  ").path is None


def test_negative_debounce_rejected() -> None:
    with pytest.raises(ValueError):
        EngineConfig(debounce_ms=-1)


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")

    # Unknown level should coerce to INFO
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    config = load_config_from_env()
    assert config.logging.level == "INFO"

    # Known level should pass through
    monkeypatch.setenv("LOG_LEVEL", "error")
    config = load_config_from_env()
    assert config.logging.level == "ERROR"


def test_get_config_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    # First call populates cache
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache


def test_app_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        AppConfig(environment="production", debug=True)


@pytest.mark.parametrize("fmt", ["json", "console"])
def test_configure_logging_accepts_both_formats(fmt: str) -> None:
    configure_logging(LoggingConfig(level="DEBUG", format=fmt))
