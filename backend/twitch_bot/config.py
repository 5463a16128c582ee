"""Twitch connector configuration"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from botcore.config import BACKEND_DIR

logger = logging.getLogger(__name__)

BOT_SCOPES = [
    "user:bot",  # Bot identifier
    "user:read:chat",  # Read chat messages
    "user:write:chat",  # Send chat messages
]

BROADCASTER_SCOPES = [
    "channel:bot",  # Allow bot to join channel
]


class TwitchBotSettings(BaseSettings):
    """Twitch bot settings"""

    model_config = SettingsConfigDict(
        env_file=BACKEND_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth
    client_id: str = Field(..., description="Twitch OAuth Client ID")
    client_secret: str = Field(..., description="Twitch OAuth Client Secret")

    # Bot Configuration
    bot_id: str = Field(..., description="Bot User ID")
    owner_id: str = Field(..., description="Owner User ID")

    # Comma-separated broadcaster user IDs to join
    twitch_channel_ids: str = Field(default="", description="Broadcaster IDs to join")

    # EventSub
    conduit_id: str = Field(default="", description="Twitch EventSub Conduit ID")

    @field_validator("twitch_channel_ids")
    @classmethod
    def validate_channel_ids(cls, v: str) -> str:
        """Broadcaster IDs are numeric"""
        for part in filter(None, (p.strip() for p in v.split(","))):
            if not part.isdigit():
                raise ValueError(f"TWITCH_CHANNEL_IDS contains a non-numeric id: {part!r}")
        return v

    @property
    def channel_ids(self) -> list[str]:
        return [p.strip() for p in self.twitch_channel_ids.split(",") if p.strip()]


@lru_cache
def get_settings() -> TwitchBotSettings:
    """Get cached settings instance"""
    return TwitchBotSettings()  # type: ignore[call-arg]
