"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Absent quarantine durations stay absent so documented defaults apply
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from quarantine.domain.models import QuarantineConfiguration

# Load environment variables from .env file
load_dotenv()


class EngineConfig(BaseModel):
    """Status pipeline tuning."""

    debounce_ms: int = Field(
        default=50, ge=0, description="Quiet period before a recomputed status is emitted"
    )


class ReminderConfig(BaseModel):
    """Reminder scheduling settings."""

    self_retest_interval_hours: float = Field(
        default=6.0, gt=0.0, description="Interval of the recurring self-retest reminder"
    )


class StorageConfig(BaseModel):
    """Event store persistence."""

    path: str | None = Field(
        default=None, description="JSON file backing the event store; in-memory when unset"
    )

    @field_validator("path")
    def blank_path_is_memory(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    quarantine: QuarantineConfiguration = Field(default_factory=QuarantineConfiguration)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _optional_int(name: str) -> int | None:
        val = os.getenv(name)
        if val is None or not val.strip():
            return None
        return int(val)

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    # Remote quarantine durations; unset stays absent
    quarantine_config = QuarantineConfiguration(
        red_warning_quarantine_hours=_optional_int("RED_WARNING_QUARANTINE_HOURS"),
        yellow_warning_quarantine_hours=_optional_int("YELLOW_WARNING_QUARANTINE_HOURS"),
        self_diagnosed_quarantine_hours=_optional_int("SELF_DIAGNOSED_QUARANTINE_HOURS"),
    )

    engine_config = EngineConfig(debounce_ms=int(os.getenv("STATUS_DEBOUNCE_MS", "50")))

    reminder_config = ReminderConfig(
        self_retest_interval_hours=float(os.getenv("SELF_RETEST_INTERVAL_HOURS", "6.0")),
    )

    storage_config = StorageConfig(path=os.getenv("EVENT_STORE_PATH"))

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        quarantine=quarantine_config,
        engine=engine_config,
        reminders=reminder_config,
        storage=storage_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nQUARANTINE DURATIONS (hours, '-' = default)")
    print(f"Red Warning: {config.quarantine.red_warning_quarantine_hours or '-'}")
    print(f"Yellow Warning: {config.quarantine.yellow_warning_quarantine_hours or '-'}")
    print(f"Self Diagnosed: {config.quarantine.self_diagnosed_quarantine_hours or '-'}")

    print("\nENGINE")
    print(f"Debounce: {config.engine.debounce_ms}ms")
    print(f"Self Retest Interval: {config.reminders.self_retest_interval_hours}h")
    print(f"Event Store: {config.storage.path or 'in-memory'}")


if __name__ == "__main__":
    print_config_summary()
