"""Application settings powered by Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration.

    Every field is kept as the raw string so the precedence resolvers can
    tell "unset" (None) apart from "set but empty" ("").
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    key_id: str | None = Field(default=None, validation_alias="ASC_KEY_ID")
    issuer_id: str | None = Field(default=None, validation_alias="ASC_ISSUER_ID")
    private_key_path: str | None = Field(
        default=None, validation_alias="ASC_PRIVATE_KEY_PATH"
    )
    private_key: str | None = Field(default=None, validation_alias="ASC_PRIVATE_KEY")
    private_key_b64: str | None = Field(
        default=None, validation_alias="ASC_PRIVATE_KEY_B64"
    )
    config_path: str | None = Field(default=None, validation_alias="ASC_CONFIG_PATH")

    max_retries: str | None = Field(default=None, validation_alias="ASC_MAX_RETRIES")
    base_delay: str | None = Field(default=None, validation_alias="ASC_BASE_DELAY")
    max_delay: str | None = Field(default=None, validation_alias="ASC_MAX_DELAY")
    retry_log: str | None = Field(default=None, validation_alias="ASC_RETRY_LOG")
    debug: str | None = Field(default=None, validation_alias="ASC_DEBUG")
    timeout: str | None = Field(default=None, validation_alias="ASC_TIMEOUT")
    timeout_seconds: str | None = Field(
        default=None, validation_alias="ASC_TIMEOUT_SECONDS"
    )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
