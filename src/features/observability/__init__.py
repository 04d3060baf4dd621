"""Observability module for logging."""

from src.features.observability.logging import (
    configure_client_logging,
    configure_logging,
    get_logger,
    redact_sensitive_fields,
)


__all__ = [
    "configure_client_logging",
    "configure_logging",
    "get_logger",
    "redact_sensitive_fields",
]
