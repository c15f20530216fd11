"""
Settings for dbanalyst, read from the environment and an optional .env file.

Each concern has its own prefixed group:

    DATABASE_*    target database (URL, catalog schema, pool, statement timeout)
    RESILIENCE_*  retry backoff, per-attempt deadline and circuit breaker
    LOG_*         level, format and optional log file
    TOOLS_*       tool policy file and row limits

Usage:
    settings = get_settings()
    breaker = settings.resilience.build_circuit_breaker()
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbanalyst.resilience.circuit_breaker import CircuitBreaker
from dbanalyst.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _group_config(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(env_prefix=prefix, env_file=".env", extra="ignore")


class DatabaseSettings(BaseSettings):
    model_config = _group_config("DATABASE_")

    url: AnyUrl | None = Field(None, description="postgresql:// URL of the analysed database")
    schema_name: str = Field("public", description="Schema whose tables the tools can see")
    pool_size: int = Field(5, gt=0, le=20)
    statement_timeout: int = Field(30, gt=0, description="Seconds before the server cancels")

    @field_validator("url", mode="before")
    @classmethod
    def blank_url_is_unset(cls, value):
        return None if value == "" else value

    @field_validator("url")
    @classmethod
    def require_postgres(cls, value: AnyUrl | None) -> AnyUrl | None:
        if value is None:
            return value
        parsed = urlparse(str(value))
        if parsed.scheme.split("+", 1)[0].lower() not in {"postgres", "postgresql"}:
            raise ValueError("DATABASE_URL must use the postgresql scheme.")
        if not parsed.hostname:
            raise ValueError("DATABASE_URL must include a host.")
        return value


class ResilienceSettings(BaseSettings):
    """Knobs for RetryPolicy and CircuitBreaker; all durations in milliseconds."""

    model_config = _group_config("RESILIENCE_")

    max_attempts: int = Field(3, ge=1)
    initial_delay_ms: int = Field(1000, ge=0)
    max_delay_ms: int = Field(10000, ge=0)
    backoff_multiplier: float = Field(2.0, ge=1.0)
    timeout_ms: int = Field(30000, gt=0, description="Deadline for a single attempt")
    failure_threshold: int = Field(5, ge=1, description="Consecutive failures before opening")
    success_threshold: int = Field(2, ge=1, description="Half-open successes before closing")
    cooldown_ms: int = Field(60000, ge=0, description="Open period before a probe is let through")

    @model_validator(mode="after")
    def check_delay_bounds(self) -> "ResilienceSettings":
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= "
                f"initial_delay_ms ({self.initial_delay_ms})"
            )
        return self

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay_ms=self.initial_delay_ms,
            max_delay_ms=self.max_delay_ms,
            backoff_multiplier=self.backoff_multiplier,
            timeout_ms=self.timeout_ms,
        )

    def build_circuit_breaker(self) -> CircuitBreaker:
        return CircuitBreaker(
            failure_threshold=self.failure_threshold,
            success_threshold=self.success_threshold,
            cooldown_ms=self.cooldown_ms,
        )


class LoggingSettings(BaseSettings):
    model_config = _group_config("LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file: Path | None = Field(None, description="Also write logs here when set")

    def configure(self) -> None:
        """Install root handlers (stderr, plus the log file if configured)."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if self.file is not None:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=self.level,
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class ToolsSettings(BaseSettings):
    model_config = _group_config("TOOLS_")

    policy_path: str = Field("config/tools.yaml", description="YAML policy overrides")
    default_query_limit: int = Field(100, gt=0, description="LIMIT added when none is given")
    default_rank_limit: int = Field(10, gt=0)
    max_query_limit: int = Field(1000, gt=0, description="Ceiling for caller-supplied limits")
    query_log_capacity: int = Field(500, gt=0)


class Settings(BaseSettings):
    """
    Root settings object. Building one also configures logging.

    Top-level variables are ENVIRONMENT and APP_NAME; everything else lives
    in the prefixed groups.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = "development"
    app_name: str = "dbanalyst"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    resilience: ResilienceSettings = Field(default_factory=ResilienceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    tools: ToolsSettings = Field(default_factory=ToolsSettings)

    @model_validator(mode="after")
    def apply_logging(self) -> "Settings":
        self.logging.configure()
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "database_schema": self.database.schema_name,
                "retry_attempts": self.resilience.max_attempts,
                "breaker_threshold": self.resilience.failure_threshold,
            },
        )
        return self


def _load_dotenv_file() -> None:
    # DBANALYST_ENV_SOURCE=environment leaves already exported variables untouched
    if os.getenv("DBANALYST_ENV_SOURCE", "dotenv").lower() not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """Process-wide Settings, built on first use."""
    _load_dotenv_file()
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached Settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
