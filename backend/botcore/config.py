"""Dispatch core configuration"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BACKEND_DIR / "data"


class DispatchSettings(BaseSettings):
    """Options shared by every connector (env prefix ``BOT_``)."""

    model_config = SettingsConfigDict(
        env_prefix="BOT_",
        env_file=BACKEND_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Dispatch
    prefix: str = Field(default="!", description="Command prefix")
    global_user_cooldown_seconds: int = Field(
        default=0, ge=0, description="Per-user cooldown across all commands"
    )
    default_command_cooldown_seconds: int = Field(
        default=5, ge=0, description="Per-user cooldown for commands without their own"
    )
    mods_exempt_from_cooldown: bool = Field(
        default=True, description="Moderators and owners skip cooldowns"
    )
    verbose_cooldown_reply: bool = Field(
        default=False, description="Tell users how long they must wait"
    )
    handler_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Max run time of one command handler"
    )

    # Caches / housekeeping
    custom_command_cache_ttl: float = Field(default=300.0, gt=0)
    cooldown_sweep_interval: float = Field(default=60.0, gt=0)

    # Activity XP (0 disables)
    xp_per_message: int = Field(default=0, ge=0)
    xp_cooldown_seconds: int = Field(default=60, ge=0)

    # Storage: PostgreSQL if database_url is set, else JSON file, else memory
    database_url: str | None = Field(default=None, description="PostgreSQL database URL")
    points_file: Path | None = Field(default=None, description="JSON data file")
    db_pool_max_size: int = Field(default=5, ge=1)
    db_command_timeout: float = Field(default=15.0, gt=0)
    db_connect_attempts: int = Field(default=3, ge=1)

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Prefix must be non-empty and contain no whitespace"""
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("BOT_PREFIX must be a non-empty string without spaces")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str | None:
        """Validate database URL starts with postgresql://"""
        if not v:
            return None
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("BOT_DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper


@lru_cache
def get_settings() -> DispatchSettings:
    """Get cached settings instance"""
    return DispatchSettings()
