"""Structured logging configuration."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog

from src.features.client.redact import REDACTED_VALUE, is_sensitive_header
from src.features.client.settings import (
    ConfigSources,
    DebugSettings,
    resolve_debug_settings,
)


def redact_sensitive_fields(
    _logger: object, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace credential-bearing top-level fields with a redaction marker.

    Acts as a last line of defence when a caller binds an Authorization
    value or similar directly onto a log event.
    """
    for key in list(event_dict):
        if is_sensitive_header(key.replace("_", "-")):
            event_dict[key] = REDACTED_VALUE
    return event_dict


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structured logging for the client.

    Sets up structlog with JSON output format and standard processors
    for timestamps, log levels, context binding and credential redaction.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Whether to use JSON format (default: True).
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive_fields,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=output,
        level=level,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger instance.

    Args:
        name: Optional logger name.

    Returns:
        Bound logger instance.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def configure_client_logging(
    sources: ConfigSources | None = None,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> DebugSettings:
    """Configure logging at the level implied by the debug settings.

    Debug logging is enabled by ``ASC_DEBUG`` (or the config ``debug`` key)
    and the debug overrides; otherwise only info and above is emitted.

    Args:
        sources: Environment and config snapshot (default: read now).
        output: Output stream (default: stderr).
        json_format: Whether to use JSON format (default: True).

    Returns:
        The resolved debug settings.
    """
    debug = resolve_debug_settings(sources)
    configure_logging(
        level=logging.DEBUG if debug.enabled else logging.INFO,
        output=output,
        json_format=json_format,
    )
    return debug
