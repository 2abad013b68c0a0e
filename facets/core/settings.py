"""Facets configuration management.

Configuration is loaded from multiple sources with the following priority
(highest to lowest):
1. Explicit overrides (CLI options, keyword arguments)
2. Environment variables (with FACETS_ prefix)
3. Configuration files (facets.config.yaml)
4. Default values

Example usage:
    from facets.core.settings import get_settings

    settings = get_settings()
    print(settings.engine.default_combine_blue)

Environment variable support:
    FACETS_LOG_LEVEL=DEBUG
    FACETS_ENGINE__DEFAULT_COMBINE_BLUE=and
    FACETS_ENGINE__SNAPSHOT_PATH=~/.facets/state.json
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from facets.filter.models import CombineMode

logger = logging.getLogger(__name__)

# Default config file names to search for
CONFIG_FILE_NAMES = ["facets.config.yaml", "facets.config.yml"]

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find configuration file by searching current directory and parents.

    Args:
        start_dir: Directory to start search from.
            Defaults to current working directory.

    Returns:
        Path to config file if found, None otherwise.
    """
    search_dir = start_dir or Path.cwd()

    # Limit search depth to prevent infinite loops
    for _ in range(10):
        for filename in CONFIG_FILE_NAMES:
            config_path = search_dir / filename
            if config_path.exists():
                return config_path

        parent = search_dir.parent
        if parent == search_dir:
            break
        search_dir = parent

    return None


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Unreadable or malformed files are logged and treated as empty.
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
            return config if isinstance(config, dict) else {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse config file %s: %s", config_path, e)
        return {}
    except OSError as e:
        logger.warning("Failed to read config file %s: %s", config_path, e)
        return {}


def _validate_level(v: str) -> str:
    upper_v = v.upper()
    if upper_v not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
    return upper_v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_output: bool = Field(
        default=False,
        description="Output logs in JSON format",
    )
    file: str | None = Field(
        default=None,
        description="Log file path (optional)",
    )
    module_levels: dict[str, str] = Field(
        default_factory=dict,
        description="Per-module log levels, e.g. {'facets.filter': 'DEBUG'}",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        return _validate_level(v)

    @field_validator("module_levels")
    @classmethod
    def validate_module_levels(cls, v: dict[str, str]) -> dict[str, str]:
        return {module: _validate_level(level) for module, level in v.items()}


class EngineSettings(BaseSettings):
    """Filter engine settings.

    These apply to facets built from a catalog that do not configure
    their own combine modes.
    """

    default_combine_blue: CombineMode = Field(
        default=CombineMode.OR,
        description="Combine mode for required marks (or, and, xor)",
    )
    default_combine_red: CombineMode = Field(
        default=CombineMode.OR,
        description="Combine mode for excluded marks (or, and, xor)",
    )
    snapshot_path: Path | None = Field(
        default=None,
        description="Default file used to load and save filter snapshots",
    )


class FacetsSettings(BaseSettings):
    """Main facets configuration settings.

    Example:
        settings = FacetsSettings()
        print(settings.log_level)

        settings = FacetsSettings(log_level="DEBUG")
        print(settings.engine.default_combine_red)
    """

    model_config = SettingsConfigDict(
        env_prefix="FACETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    log_level: str = Field(
        default="INFO",
        description="Application log level",
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        return _validate_level(v)

    @model_validator(mode="before")
    @classmethod
    def load_from_config_file(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Merge values from a discovered config file under explicit data."""
        if data.get("_skip_file_loading"):
            data.pop("_skip_file_loading", None)
            return data

        config_path = _find_config_file()
        if not config_path:
            return data

        file_config = _load_yaml_config(config_path)
        if not file_config:
            return data

        logger.debug("Loaded configuration from %s", config_path)
        merged = {**file_config, **data}

        for section in ["logging", "engine"]:
            if isinstance(file_config.get(section), dict):
                merged[section] = {
                    **file_config[section],
                    **(
                        data.get(section, {})
                        if isinstance(data.get(section), dict)
                        else {}
                    ),
                }

        return merged


def get_settings(
    config_file: Path | None = None,
    **overrides: Any,
) -> FacetsSettings:
    """Get facets settings instance.

    Args:
        config_file: Optional explicit path to configuration file.
        **overrides: Explicit configuration overrides.

    Returns:
        Configured FacetsSettings instance.
    """
    if config_file and config_file.exists():
        file_config = _load_yaml_config(config_file)
        merged = {**file_config, **overrides, "_skip_file_loading": True}
        return FacetsSettings(**merged)

    return FacetsSettings(**overrides)


@lru_cache
def get_cached_settings() -> FacetsSettings:
    """Get cached settings instance.

    The cache can be cleared with get_cached_settings.cache_clear() if needed.
    """
    return get_settings()
