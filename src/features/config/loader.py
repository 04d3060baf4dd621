"""Configuration file discovery and loading."""

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.features.config.constants import (
    COMPONENT_CONFIG,
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
)
from src.features.config.models import ConfigFile


logger = structlog.get_logger()


class ConfigError(Exception):
    """Raised when a configuration file exists but cannot be used."""

    def __init__(self, file_path: Path, message: str) -> None:
        """Initialize the error.

        Args:
            file_path: Path to the offending file.
            message: Human-readable error message.
        """
        self.file_path = file_path
        super().__init__(f"Invalid config {file_path}: {message}")


def global_config_path() -> Path:
    """Return the per-user configuration file path."""
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def find_local_config_path(start: Path | None = None) -> Path | None:
    """Search for a project-local config file from ``start`` upwards.

    Args:
        start: Directory to start from (default: current directory).

    Returns:
        Path of the first ``.asc/config.json`` found, or None.
    """
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def resolve_config_path(explicit_path: str | None = None) -> Path:
    """Resolve the active configuration file path.

    Order: explicit path (``ASC_CONFIG_PATH``), then a local file found by
    walking up from the working directory, then the per-user file.

    Args:
        explicit_path: Path supplied through the environment, if any.

    Returns:
        Path that should be read (it may not exist).
    """
    if explicit_path and explicit_path.strip():
        return Path(explicit_path.strip()).expanduser()

    local_path = find_local_config_path()
    if local_path is not None:
        return local_path

    return global_config_path()


def load_config_at(path: Path) -> ConfigFile | None:
    """Load a configuration file.

    The file is JSON on disk; it is read with the YAML safe loader, which
    accepts JSON as well as hand-written YAML.

    Args:
        path: File to read.

    Returns:
        Parsed configuration, or None if the file does not exist.

    Raises:
        ConfigError: If the file cannot be read or validated.
    """
    log = logger.bind(component=COMPONENT_CONFIG, file_path=str(path))

    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        log.debug("config_file_missing")
        return None
    except OSError as e:
        raise ConfigError(path, f"failed to read: {e}") from e

    try:
        parsed = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigError(path, f"failed to parse: {e}") from e

    if not isinstance(parsed, dict):
        raise ConfigError(path, "top-level value must be an object")

    try:
        config = ConfigFile.model_validate(parsed)
    except ValidationError as e:
        raise ConfigError(path, f"{e.error_count()} validation errors") from e

    log.debug("config_file_loaded")
    return config


def load_config(explicit_path: str | None = None) -> ConfigFile | None:
    """Resolve the active configuration path and load it.

    Args:
        explicit_path: Path supplied through the environment, if any.

    Returns:
        Parsed configuration, or None if no file exists.

    Raises:
        ConfigError: If the file exists but is invalid.
    """
    return load_config_at(resolve_config_path(explicit_path))
