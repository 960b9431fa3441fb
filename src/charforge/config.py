"""
Configuration model for the charforge rules engine.

Settings come from a ``CharforgeConfig`` instance. ``load_config`` builds one
from ``CHARFORGE_*`` environment variables, optionally seeded from a ``.env``
file through python-dotenv.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator


logger = logging.getLogger("charforge")

DEFAULT_DATA_URL = (
    "https://raw.githubusercontent.com/5etools-mirror-3/5etools-src/main/data"
)

# Environment variable → config field
ENV_VARIABLES: dict[str, str] = {
    "CHARFORGE_DATA_URL": "data_url",
    "CHARFORGE_DATA_DIR": "data_dir",
    "CHARFORGE_CACHE_TTL": "cache_ttl",
    "CHARFORGE_MAX_CACHE_ENTRIES": "max_cache_entries",
    "CHARFORGE_MAX_RETRIES": "max_retries",
    "CHARFORGE_RETRY_DELAY": "retry_delay",
    "CHARFORGE_REQUEST_TIMEOUT": "request_timeout",
    "CHARFORGE_DOWNLOAD_CONCURRENCY": "download_concurrency",
    "CHARFORGE_ALLOWED_SOURCES": "allowed_sources",
    "CHARFORGE_LOG_LEVEL": "log_level",
}


class ConfigError(Exception):
    """Raised when configuration values are invalid."""


class CharforgeConfig(BaseModel):
    """Settings for data loading, caching and source selection."""

    # Data location
    data_url: str = Field(
        default=DEFAULT_DATA_URL,
        description="Base URL of the 5etools data directory"
    )
    data_dir: Path | None = Field(
        default=None,
        description="Local 5etools data directory; overrides data_url when set"
    )

    # Cache
    cache_ttl: int = Field(
        default=3600,
        ge=0,
        description="Default seconds before a cached resource goes stale"
    )
    max_cache_entries: int = Field(
        default=50,
        ge=1,
        le=10000,
        description="Maximum number of resource keys held in the raw data cache"
    )

    # Fetching
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Fetch attempts for a primary resource before giving up"
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay in seconds between attempts, doubled each retry"
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="HTTP timeout in seconds"
    )
    download_concurrency: int = Field(
        default=5,
        ge=1,
        le=32,
        description="Concurrent file downloads for split categories"
    )

    # Sources
    allowed_sources: list[str] = Field(
        default_factory=lambda: ["PHB"],
        description="Source codes visible to the character"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level name for configure_logging()"
    )

    @field_validator("allowed_sources", mode="before")
    @classmethod
    def validate_allowed_sources(cls, v: Any) -> list[str]:
        """Accept a list or a comma-separated string; codes are uppercased."""
        if v is None:
            return ["PHB"]
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, (list, tuple, set)):
            raise ValueError(
                f"allowed_sources must be a list or comma-separated string, got {type(v)}"
            )
        codes = [str(code).strip().upper() for code in v]
        return [code for code in codes if code]

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        level = str(v).strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("data_dir", mode="before")
    @classmethod
    def validate_data_dir(cls, v: Any) -> Any:
        if v == "":
            return None
        return v


def load_config(env_file: str | Path | None = None, **overrides: Any) -> CharforgeConfig:
    """Build a config from the environment.

    Args:
        env_file: Optional path to a ``.env`` file. When omitted, python-dotenv
            searches for one starting from the working directory.
        **overrides: Field values that take precedence over the environment.

    Returns:
        A validated CharforgeConfig.

    Raises:
        ConfigError: If a value fails validation.
    """
    if env_file is not None:
        loaded = load_dotenv(env_file)
    else:
        loaded = load_dotenv()
    if not loaded:
        logger.debug("No .env file found, using process environment only")

    values: dict[str, Any] = {}
    for env_name, field_name in ENV_VARIABLES.items():
        raw = os.getenv(env_name)
        if raw is not None:
            values[field_name] = raw
    values.update(overrides)

    try:
        return CharforgeConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid charforge configuration: {e}") from e


def configure_logging(level: str | int = "INFO") -> None:
    """Configure the root logger the way the application entry point expects."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug(f"Logging configured at {level}")


__all__ = [
    "CharforgeConfig",
    "ConfigError",
    "DEFAULT_DATA_URL",
    "configure_logging",
    "load_config",
]
