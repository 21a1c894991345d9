"""Configuration system for Monthbook.

This module provides Pydantic Settings-based configuration with environment
variable support and sensible defaults.

Usage:
    from monthbook_core.config import MonthbookConfig

    # Load from environment variables and .env file
    config = MonthbookConfig()

    # Where the state document lives
    print(config.state_path)

    # Engine settings
    if config.engine.auto_savings:
        print("Automatic savings enabled")
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .months import is_valid_ym


class EngineConfig(BaseSettings):
    """Resolution engine settings.

    Environment Variables:
        MONTHBOOK_ENGINE_AUTO_SAVINGS: Adjust the savings transfer on live months
        MONTHBOOK_ENGINE_DEFAULT_MONTH: Month shown when none is requested (YYYY-MM)
    """

    model_config = SettingsConfigDict(
        env_prefix="MONTHBOOK_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    auto_savings: bool = Field(
        default=True,
        description="Let the savings transfer absorb the salary left over",
    )
    default_month: Optional[str] = Field(
        default=None,
        description="Month shown when none is requested, current month otherwise",
    )

    @field_validator("default_month")
    @classmethod
    def validate_default_month(cls, v: Optional[str]) -> Optional[str]:
        """Ensure the default month is a YYYY-MM identifier."""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not is_valid_ym(v):
            raise ValueError(f"Invalid month: {v}. Expected YYYY-MM")
        return v


class MonthbookConfig(BaseSettings):
    """Root configuration for Monthbook.

    Environment Variables:
        MONTHBOOK_ENV: Environment name (development, staging, production, test)
        MONTHBOOK_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        MONTHBOOK_DATA_DIR: Directory for data files
        MONTHBOOK_STATE_FILE: State document path (defaults to <data_dir>/state.json)

    Example:
        config = MonthbookConfig(
            data_dir="/tmp/monthbook",
            engine=EngineConfig(auto_savings=False),
        )
    """

    model_config = SettingsConfigDict(
        env_prefix="MONTHBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = Field(
        default="development",
        description="Environment name (development, staging, production, test)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    data_dir: str = Field(
        default="./data",
        description="Directory for data files",
    )
    state_file: Optional[str] = Field(
        default=None,
        description="Path of the state document",
    )

    engine: EngineConfig = Field(default_factory=EngineConfig)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production", "test"}
        v_lower = v.lower().strip()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    @property
    def state_path(self) -> Path:
        """Resolved path of the state document."""
        if self.state_file:
            return Path(self.state_file)
        return Path(self.data_dir) / "state.json"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_debug(self) -> bool:
        return self.log_level == "DEBUG"


def configure_logging(config: MonthbookConfig) -> None:
    """Set up structlog to filter below the configured level."""
    level = logging.getLevelName(config.log_level)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def load_config(**overrides) -> MonthbookConfig:
    """Load the configuration, reporting invalid settings as ConfigurationError.

    Raises:
        ConfigurationError: If a setting from the environment is invalid.
    """
    try:
        return MonthbookConfig(**overrides)
    except PydanticValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first["loc"])
        raise ConfigurationError(
            f"Invalid configuration: {first['msg']}",
            config_key=key,
            actual=first.get("input"),
        ) from e
