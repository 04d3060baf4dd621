"""Schema for the persisted client configuration file."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConfigFile(BaseModel):
    """Persisted client configuration.

    Values stay as text, mirroring the on-disk format; the precedence
    resolvers parse and validate them and fall back to defaults when a value
    is blank or malformed.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    key_id: str = ""
    issuer_id: str = ""
    private_key_path: str = ""
    default_key_name: str = ""
    app_id: str = ""

    timeout: str = ""
    timeout_seconds: str = ""
    max_retries: str = ""
    base_delay: str = ""
    max_delay: str = ""
    retry_log: str = ""
    debug: str = Field(default="", description="Non-empty enables debug; 'api' adds HTTP traces")

    @field_validator("*", mode="before")
    @classmethod
    def coerce_scalars(cls, v: object) -> object:
        """Accept numbers and booleans written without quotes."""
        if v is None:
            return ""
        if isinstance(v, bool):
            return "true" if v else ""
        if isinstance(v, int | float):
            return str(v)
        return v
