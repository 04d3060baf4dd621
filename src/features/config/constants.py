"""Constants for configuration file discovery."""

from typing import Final


CONFIG_DIR_NAME: Final[str] = ".asc"
CONFIG_FILE_NAME: Final[str] = "config.json"

COMPONENT_CONFIG: Final[str] = "config"
