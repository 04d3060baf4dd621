"""Resolution of client behavior from overrides, environment and config file.

Every setting here follows one precedence order:

1. explicit programmatic override (``set_*_override`` or a call argument),
2. environment variable (``ASC_*``), which wins as soon as it is present,
   even when empty or invalid,
3. the persisted config file,
4. the built-in default.

Invalid values never raise; they fall back to the default.

The override accessors hold process-wide state. They are meant to be set
once at startup or by a test harness, not toggled while requests are in
flight.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict

from src.features.client.constants import (
    COMPONENT_CLIENT,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
)
from src.features.client.retry import RetryPolicy
from src.features.config.durations import parse_duration
from src.features.config.loader import ConfigError, load_config
from src.features.config.models import ConfigFile
from src.settings.app import AppSettings, get_settings


logger = structlog.get_logger()

T = TypeVar("T")


class _Override(Generic[T]):
    """A lock-guarded optional value."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None

    def get(self) -> T | None:
        with self._lock:
            return self._value

    def set(self, value: T | None) -> None:
        with self._lock:
            self._value = value


_retry_log_override: _Override[bool] = _Override()
_debug_override: _Override[bool] = _Override()
_debug_http_override: _Override[bool] = _Override()


def set_retry_log_override(value: bool | None) -> None:
    """Force retry logging on or off; None restores env/config resolution."""
    _retry_log_override.set(value)


def get_retry_log_override() -> bool | None:
    """Return the current retry-log override."""
    return _retry_log_override.get()


def set_debug_override(value: bool | None) -> None:
    """Force debug logging on or off; None restores env/config resolution."""
    _debug_override.set(value)


def set_debug_http_override(value: bool | None) -> None:
    """Force verbose HTTP logging on or off; None restores env/config resolution."""
    _debug_http_override.set(value)


@dataclass(frozen=True)
class ConfigSources:
    """Environment settings and the config file, read once per resolution."""

    settings: AppSettings
    config: ConfigFile | None = None

    @classmethod
    def load(cls) -> "ConfigSources":
        """Read the environment and the active config file.

        A config file that exists but cannot be parsed is logged and ignored.
        """
        settings = get_settings()
        try:
            config = load_config(settings.config_path)
        except ConfigError as e:
            logger.warning(
                "config_file_ignored",
                component=COMPONENT_CLIENT,
                file_path=str(e.file_path),
                error=str(e),
            )
            config = None
        return cls(settings=settings, config=config)


class RetryOverrides(BaseModel):
    """Explicit retry settings that take precedence over env and config."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int | None = None
    base_delay_seconds: float | None = None
    max_delay_seconds: float | None = None


@dataclass(frozen=True)
class DebugSettings:
    """Resolved debug switches."""

    enabled: bool = False
    verbose_http: bool = False


def _layered(
    env_value: str | None,
    config_value: str | None,
    parse: Callable[[str], T | None],
) -> T | None:
    """Pick the env value if present, else the config value, then parse it."""
    if env_value is not None:
        raw = env_value.strip()
    elif config_value is not None:
        raw = config_value.strip()
    else:
        return None
    if not raw:
        return None
    return parse(raw)


def _parse_non_negative_int(raw: str) -> int | None:
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def _parse_positive_int(raw: str) -> int | None:
    value = _parse_non_negative_int(raw)
    return value if value else None


def _parse_positive_duration(raw: str) -> float | None:
    try:
        value = parse_duration(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def resolve_retry_policy(
    overrides: RetryOverrides | None = None,
    sources: ConfigSources | None = None,
) -> RetryPolicy:
    """Resolve the retry policy for one call.

    ``ASC_MAX_RETRIES`` / ``max_retries`` count retries, so the resolved
    ``max_attempts`` is one more than that value.

    Args:
        overrides: Explicit values that win over everything else.
        sources: Environment and config file (default: read now).

    Returns:
        The immutable policy for this call.
    """
    sources = sources or ConfigSources.load()
    env = sources.settings
    config = sources.config
    overrides = overrides or RetryOverrides()

    max_attempts = overrides.max_attempts
    if max_attempts is None:
        retries = _layered(
            env.max_retries,
            config.max_retries if config else None,
            _parse_non_negative_int,
        )
        max_attempts = (retries if retries is not None else DEFAULT_MAX_RETRIES) + 1

    base_delay = overrides.base_delay_seconds
    if base_delay is None:
        base_delay = _layered(
            env.base_delay,
            config.base_delay if config else None,
            _parse_positive_duration,
        ) or DEFAULT_BASE_DELAY_SECONDS

    max_delay = overrides.max_delay_seconds
    if max_delay is None:
        max_delay = _layered(
            env.max_delay,
            config.max_delay if config else None,
            _parse_positive_duration,
        ) or DEFAULT_MAX_DELAY_SECONDS

    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay_seconds=base_delay,
        max_delay_seconds=max(max_delay, base_delay),
    )


def resolve_retry_log_enabled(sources: ConfigSources | None = None) -> bool:
    """Resolve whether each retry is logged at info level.

    A present ``ASC_RETRY_LOG`` enables logging when non-empty and disables
    it when empty.
    """
    override = get_retry_log_override()
    if override is not None:
        return override

    sources = sources or ConfigSources.load()
    if sources.settings.retry_log is not None:
        return sources.settings.retry_log.strip() != ""
    if sources.config is None:
        return False
    return sources.config.retry_log.strip() != ""


def _debug_from_value(value: str) -> DebugSettings:
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no"}:
        return DebugSettings()
    return DebugSettings(enabled=True, verbose_http="api" in normalized)


def resolve_debug_settings(sources: ConfigSources | None = None) -> DebugSettings:
    """Resolve the debug switches.

    ``ASC_DEBUG`` (or config ``debug``) enables debug logging unless it is
    empty, ``0``, ``false`` or ``no``; a value containing ``api`` also turns
    on HTTP request/response traces. The HTTP override implies debug when
    true; a false debug override disables both.
    """
    sources = sources or ConfigSources.load()
    if sources.settings.debug is not None:
        resolved = _debug_from_value(sources.settings.debug)
    elif sources.config is not None:
        resolved = _debug_from_value(sources.config.debug)
    else:
        resolved = DebugSettings()

    http_override = _debug_http_override.get()
    if http_override is not None:
        resolved = DebugSettings(
            enabled=resolved.enabled or http_override, verbose_http=http_override
        )

    enabled_override = _debug_override.get()
    if enabled_override is not None:
        if not enabled_override:
            return DebugSettings()
        resolved = DebugSettings(
            enabled=True,
            verbose_http=resolved.verbose_http if http_override is not None else False,
        )

    return resolved


def resolve_timeout(
    default: float = DEFAULT_TIMEOUT_SECONDS,
    sources: ConfigSources | None = None,
) -> float:
    """Resolve the per-request timeout in seconds.

    ``ASC_TIMEOUT`` takes a duration (``90s``), ``ASC_TIMEOUT_SECONDS`` an
    integer; the config keys ``timeout`` and ``timeout_seconds`` mirror them.
    """
    sources = sources or ConfigSources.load()
    env = sources.settings

    if env.timeout is not None:
        return _parse_positive_duration(env.timeout.strip()) or default
    if env.timeout_seconds is not None:
        seconds = _parse_positive_int(env.timeout_seconds.strip())
        return float(seconds) if seconds else default

    config = sources.config
    if config is None:
        return default
    if config.timeout.strip():
        parsed = _parse_positive_duration(config.timeout.strip())
        if parsed:
            return parsed
    if config.timeout_seconds.strip():
        seconds = _parse_positive_int(config.timeout_seconds.strip())
        if seconds:
            return float(seconds)
    return default
