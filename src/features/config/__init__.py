"""Configuration file loading for the client."""

from src.features.config.durations import format_duration, parse_duration
from src.features.config.loader import (
    ConfigError,
    find_local_config_path,
    global_config_path,
    load_config,
    load_config_at,
    resolve_config_path,
)
from src.features.config.models import ConfigFile


__all__ = [
    "ConfigError",
    "ConfigFile",
    "find_local_config_path",
    "format_duration",
    "global_config_path",
    "load_config",
    "load_config_at",
    "parse_duration",
    "resolve_config_path",
]
