"""
Relay configuration.

All settings can be overridden via environment variables with the
PREKEYCHAT_ prefix, e.g. PREKEYCHAT_PORT=9090.

Usage:
    from prekeychat.config import get_settings

    settings = get_settings()
    print(settings.port)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .relay import DEFAULT_REMOTE_NAME
from .types import DEFAULT_DEVICE_ID


class RelaySettings(BaseSettings):
    """Settings for the relay process."""

    model_config = SettingsConfigDict(
        env_prefix="PREKEYCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1", description="HTTP bind address")
    port: int = Field(default=8080, description="HTTP port")

    local_name: str = Field(default="local", description="Name of the local party")
    remote_name: str = Field(default=DEFAULT_REMOTE_NAME, description="Name of the remote party")
    device_id: int = Field(default=DEFAULT_DEVICE_ID, ge=1, description="Device id published in local bundles")

    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> RelaySettings:
    """Return the process-wide settings (cached)."""
    return RelaySettings()
