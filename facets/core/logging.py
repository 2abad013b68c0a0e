"""Structured logging for the facets engine.

This module provides structured logging with:
- JSON output for production, pretty output for development
- A facet context bound to every event emitted while a facet is processed
- Log level configuration per module
- Integration with Python's standard logging

Library modules log through ``logging.getLogger(__name__)``; the stdlib records
are rendered by structlog once ``configure_logging`` has run.

Example usage:
    from facets.core.logging import configure_logging, get_logger, facet_context

    configure_logging(level="DEBUG")

    logger = get_logger(__name__)
    logger.info("catalog_loaded", facets=3, entries=120)

    with facet_context("Source"):
        logger.debug("state_decoded")  # Includes facet="Source"
"""

import logging
import sys
from collections.abc import Mapping
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from facets import __version__

if TYPE_CHECKING:
    from facets.core.settings import FacetsSettings

# Header of the facet currently being processed, if any
_current_facet: ContextVar[str | None] = ContextVar("current_facet", default=None)

# Module-level log level overrides
_module_log_levels: dict[str, int] = {}

_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "exception": logging.ERROR,
}


def get_current_facet() -> str | None:
    """Get the facet header bound to the current context."""
    return _current_facet.get()


class facet_context:
    """Context manager binding a facet header to every log event.

    Example:
        with facet_context("Source"):
            logger.info("evaluating")  # Includes facet="Source"
    """

    def __init__(self, header: str) -> None:
        self.header = header
        self._token: Any = None

    def __enter__(self) -> str:
        self._token = _current_facet.set(self.header)
        return self.header

    def __exit__(self, *args: Any) -> None:
        _current_facet.reset(self._token)


# =============================================================================
# Structlog Processors
# =============================================================================


def add_facet(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the current facet header to log events if available."""
    header = get_current_facet()
    if header is not None:
        event_dict.setdefault("facet", header)
    return event_dict


def add_common_fields(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the package version to every event."""
    event_dict.setdefault("facets_version", __version__)
    return event_dict


def filter_by_module_level(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Filter log events based on module-specific log levels."""
    if not _module_log_levels:
        return event_dict

    logger_name = event_dict.get("logger", "")
    if not logger_name:
        return event_dict

    # Find the most specific module level that matches
    level_threshold = None
    matched_prefix = ""

    for module, level in _module_log_levels.items():
        if logger_name == module or logger_name.startswith(f"{module}."):
            if len(module) > len(matched_prefix):
                level_threshold = level
                matched_prefix = module

    if level_threshold is not None:
        current_level = _LEVEL_MAP.get(method_name.lower(), logging.INFO)
        if current_level < level_threshold:
            raise structlog.DropEvent

    return event_dict


# =============================================================================
# Logging Configuration
# =============================================================================


def set_module_log_level(module: str, level: int | str) -> None:
    """Set the log level for a specific module.

    Args:
        module: Module name (e.g., "facets.filter", "facets.filter.serialization")
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or int
    """
    if isinstance(level, str):
        numeric_level: int = getattr(logging, level.upper(), logging.INFO)
    else:
        numeric_level = level
    _module_log_levels[module] = numeric_level


def get_module_log_level(module: str) -> int | None:
    """Get the log level override for a module, if one is set."""
    return _module_log_levels.get(module)


def clear_module_log_levels() -> None:
    """Clear all module-specific log level overrides."""
    _module_log_levels.clear()


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_facet,
        add_common_fields,
        filter_by_module_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    level: str | int = logging.INFO,
    json_output: bool | None = None,
    log_file: str | None = None,
    module_levels: Mapping[str, str | int] | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Global log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON output format. If None, auto-detects:
                     True if not a TTY (production), False otherwise (dev)
        log_file: Optional file path for log output
        module_levels: Dict of module name to log level for per-module config
    """
    if json_output is None:
        json_output = not sys.stdout.isatty()

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if module_levels:
        for module, mod_level in module_levels.items():
            set_module_log_level(module, mod_level)

    shared_processors = _shared_processors()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if json_output:
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=shared_processors,
        )
    else:
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=True),
            foreign_pre_chain=shared_processors,
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # stderr keeps command output on stdout clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def configure_logging_from_settings(
    settings: "FacetsSettings | None" = None,
    level: str | int | None = None,
) -> None:
    """Configure logging from facets settings.

    Args:
        settings: Settings to read. Defaults to the cached settings.
        level: Global level overriding the configured one (e.g. --verbose).
    """
    # Import here to avoid circular imports
    from facets.core.settings import get_cached_settings

    if settings is None:
        settings = get_cached_settings()

    configure_logging(
        level=level or settings.logging.level,
        json_output=settings.logging.json_output,
        log_file=settings.logging.file,
        module_levels=settings.logging.module_levels,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__). If None, returns the root logger.

    Returns:
        A structured logger instance.
    """
    return structlog.get_logger(name)


def reset_logging() -> None:
    """Reset logging configuration to defaults.

    This is primarily useful for testing to ensure clean state between tests.
    """
    clear_module_log_levels()
    _current_facet.set(None)

    structlog.reset_defaults()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
