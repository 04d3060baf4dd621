"""Shared, deterministic timestamps for tests."""

from datetime import UTC, datetime


# Fixed timestamp so token claims and Retry-After dates are reproducible.
FIXED_NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=UTC)
