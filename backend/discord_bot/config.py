"""Discord connector configuration"""

import logging
from functools import lru_cache

import discord
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from botcore.config import BACKEND_DIR

logger = logging.getLogger(__name__)


class DiscordBotSettings(BaseSettings):
    """Discord bot settings"""

    model_config = SettingsConfigDict(
        env_file=BACKEND_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    discord_bot_token: str = Field(..., description="Discord bot token")

    # Presence
    discord_status: str = Field(default="", description="online/idle/dnd/invisible")
    discord_activity_name: str = Field(default="", description="Shown as 'playing ...'")

    def get_status(self) -> discord.Status:
        status_map = {
            "online": discord.Status.online,
            "idle": discord.Status.idle,
            "dnd": discord.Status.dnd,
            "invisible": discord.Status.invisible,
        }
        return status_map.get(self.discord_status.lower(), discord.Status.online)

    def get_activity(self) -> discord.Activity | None:
        if not self.discord_activity_name:
            return None
        return discord.Activity(type=discord.ActivityType.playing, name=self.discord_activity_name)


@lru_cache
def get_settings() -> DiscordBotSettings:
    """Get cached settings instance"""
    return DiscordBotSettings()  # type: ignore[call-arg]
