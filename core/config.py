"""
Configuration management with environment variable support and validation.

Design principles:
- Validation at startup (fail fast)
- Type safety with Pydantic
- Every tunable has a safe default, so an empty environment is valid
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class SchedulerConfig(BaseModel):
    """Reminder polling configuration."""

    poll_interval_seconds: float = Field(
        default=10.0,
        gt=0.0,
        lt=60.0,
        description="Seconds between reminder ticks; must land at least once per minute",
    )
    skipped_resolves_reminder: bool = Field(
        default=False, description="Treat a Skipped log as resolving today's reminder"
    )


class IntakeConfig(BaseModel):
    """Intake transaction behaviour."""

    enforce_one_log_per_day: bool = Field(
        default=False, description="Reject a second Taken/Skipped log for the same day"
    )


class AdherenceConfig(BaseModel):
    """Statistics windows."""

    window_days: int = Field(default=7, gt=0, description="Trailing window for adherence rate")
    history_days: int = Field(default=7, gt=0, description="Days in the daily breakdown")


class PersistenceConfig(BaseModel):
    """Durable storage settings and the write policy applied by callers."""

    backend: Literal["memory", "json"] = Field(default="json", description="Storage adapter")
    data_file_path: str = Field(
        default="./medimind_data.json", description="Path of the JSON ledger file"
    )
    timeout_seconds: float = Field(default=10.0, gt=0.0, description="Timeout per durable write")
    retry_attempts: int = Field(
        default=2, ge=0, description="Extra attempts for idempotent writes after a failure"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    intake: IntakeConfig = Field(default_factory=IntakeConfig)
    adherence: AdherenceConfig = Field(default_factory=AdherenceConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


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

    def _backend_to_literal(val: str) -> Literal["memory", "json"]:
        return "memory" if val.strip().lower() == "memory" else "json"

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    scheduler_config = SchedulerConfig(
        poll_interval_seconds=float(os.getenv("REMINDER_POLL_INTERVAL_SECONDS", "10.0")),
        skipped_resolves_reminder=_parse_bool(os.getenv("SKIPPED_RESOLVES_REMINDER"), False),
    )

    intake_config = IntakeConfig(
        enforce_one_log_per_day=_parse_bool(os.getenv("ENFORCE_ONE_LOG_PER_DAY"), False),
    )

    adherence_config = AdherenceConfig(
        window_days=int(os.getenv("ADHERENCE_WINDOW_DAYS", "7")),
        history_days=int(os.getenv("HISTORY_DAYS", "7")),
    )

    persistence_config = PersistenceConfig(
        backend=_backend_to_literal(os.getenv("PERSISTENCE_BACKEND", "json")),
        data_file_path=os.getenv("DATA_FILE_PATH", "./medimind_data.json"),
        timeout_seconds=float(os.getenv("PERSISTENCE_TIMEOUT_SECONDS", "10.0")),
        retry_attempts=int(os.getenv("PERSISTENCE_RETRY_ATTEMPTS", "2")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        scheduler=scheduler_config,
        intake=intake_config,
        adherence=adherence_config,
        persistence=persistence_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"Configuration loaded for {config.environment} environment")
        if config.persistence.backend == "json":
            print(f"Ledger file: {config.persistence.data_file_path}")
    except Exception as e:
        print(f"Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nREMINDERS")
    print(f"Poll Interval: {config.scheduler.poll_interval_seconds}s")
    print(f"Skipped Resolves Reminder: {config.scheduler.skipped_resolves_reminder}")

    print("\nINTAKE")
    print(f"One Log Per Day: {config.intake.enforce_one_log_per_day}")

    print("\nPERSISTENCE")
    print(f"Backend: {config.persistence.backend}")
    print(f"Timeout: {config.persistence.timeout_seconds}s")
    print(f"Retry Attempts: {config.persistence.retry_attempts}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
