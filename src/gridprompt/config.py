"""
gridprompt configuration management.

Loads settings from a gridprompt.config file in the current directory. The
file holds key=value pairs; missing keys fall back to defaults, and command
line options override file values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from gridprompt.errors import ConfigError

CONFIG_FILENAME = "gridprompt.config"

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class GridPromptConfig(BaseModel):
    """gridprompt run configuration."""

    DEFAULT_MODEL: ClassVar[str] = "gemini-2.5-flash"
    DEFAULT_CONCURRENCY: ClassVar[int] = 3
    DEFAULT_RATE_LIMIT: ClassVar[int] = 60
    DEFAULT_TIMEOUT: ClassVar[int] = 60
    DEFAULT_API_KEY_ENV: ClassVar[str] = "GEMINI_API_KEY"

    VALID_LOG_LEVELS: ClassVar[list[str]] = list(LOG_LEVELS)

    MODEL: str = Field(default=DEFAULT_MODEL, description="Gemini model name")
    CONCURRENCY: int = Field(
        default=DEFAULT_CONCURRENCY,
        description="Maximum simultaneous requests",
        ge=1,
        le=1500,
    )
    RATE_LIMIT: int = Field(
        default=DEFAULT_RATE_LIMIT,
        description="Maximum requests per minute",
        ge=1,
        le=1500,
    )
    TIMEOUT: int = Field(
        default=DEFAULT_TIMEOUT,
        description="Per-request timeout in seconds",
        ge=5,
        le=300,
    )
    ENABLE_WEB_SEARCH: bool = Field(
        default=True,
        description="Ground requests with Google Search",
    )
    OUTPUT_FOLDER: str = Field(default=".", description="Directory for exported CSV files")
    LOG_LEVEL: str = Field(default="info", description="error, warn, info or debug")
    API_KEY_ENV: str = Field(
        default=DEFAULT_API_KEY_ENV,
        description="Environment variable holding the Gemini API key",
    )

    model_config = {"extra": "forbid"}

    @field_validator("ENABLE_WEB_SEARCH", mode="before")
    @classmethod
    def validate_enable_web_search(cls, v: Any) -> bool:
        """
        Convert various string representations to boolean.

        Truthy values: "true", "1", "yes", "on" (case-insensitive)
        """
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.lower()
        if level not in cls.VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(cls.VALID_LOG_LEVELS)}, got {v!r}"
            )
        return level

    @property
    def timeout_ms(self) -> int:
        return self.TIMEOUT * 1000

    @property
    def logging_level(self) -> int:
        """LOG_LEVEL as a logging module constant."""
        return LOG_LEVELS[self.LOG_LEVEL]


def get_config_file_path() -> Path:
    """Get the path to the gridprompt configuration file."""
    return Path.cwd() / CONFIG_FILENAME


def config_file_exists() -> bool:
    return get_config_file_path().exists()


def _parse_config_file(config_file: Path) -> dict[str, str]:
    config_data = {}
    with open(config_file, "r") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, value = line.split("=", 1)
                config_data[key.strip()] = value.strip().strip('"').strip("'")
    return config_data


def load_config() -> GridPromptConfig:
    """
    Load configuration from gridprompt.config in the current directory.

    Example file:

    MODEL="gemini-2.5-flash"
    CONCURRENCY=5
    RATE_LIMIT=120
    ENABLE_WEB_SEARCH=false

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigError: If a value is invalid
    """
    config_file = get_config_file_path()
    if not config_file.exists():
        raise FileNotFoundError(
            f"gridprompt configuration file not found: {config_file}\n"
            "Run 'gridprompt init' to create one."
        )

    try:
        return GridPromptConfig(**_parse_config_file(config_file))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_file}: {e}") from e


def get_config_or_default() -> GridPromptConfig:
    """Load the configuration file if present, otherwise return defaults."""
    if config_file_exists():
        return load_config()
    return GridPromptConfig()


def apply_overrides(config: GridPromptConfig, overrides: dict[str, Any]) -> GridPromptConfig:
    """
    Return a copy of config with non-None overrides applied and re-validated.

    Raises:
        ConfigError: If an override is out of range
    """
    values = config.model_dump()
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return GridPromptConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid option: {e}") from e


def create_config(**overrides: Any) -> GridPromptConfig:
    """
    Write a gridprompt.config file with defaults (plus overrides) to cwd.

    Args:
        **overrides: Field values, e.g. CONCURRENCY=5

    Returns:
        The written configuration
    """
    config = GridPromptConfig(**overrides)
    config_file = get_config_file_path()

    with open(config_file, "w") as f:
        f.write("# gridprompt configuration\n\n")
        f.write(f'MODEL="{config.MODEL}"\n')
        f.write(f"CONCURRENCY={config.CONCURRENCY}\n")
        f.write(f"RATE_LIMIT={config.RATE_LIMIT}\n")
        f.write(f"TIMEOUT={config.TIMEOUT}\n")
        f.write(f"ENABLE_WEB_SEARCH={str(config.ENABLE_WEB_SEARCH).lower()}\n")
        f.write(f'OUTPUT_FOLDER="{config.OUTPUT_FOLDER}"\n')
        f.write(f"LOG_LEVEL={config.LOG_LEVEL}\n")
        f.write(f"API_KEY_ENV={config.API_KEY_ENV}\n")

    return config


def get_api_key(config: GridPromptConfig) -> str:
    """
    Read the Gemini API key from the environment.

    Raises:
        ConfigError: If the variable is unset or empty
    """
    api_key = os.environ.get(config.API_KEY_ENV, "").strip()
    if not api_key:
        raise ConfigError(f"{config.API_KEY_ENV} environment variable not set")
    return api_key
