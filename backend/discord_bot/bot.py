"""Discord client: maps guild messages to ChatEvents and sends replies."""

from __future__ import annotations

import logging

import discord

from botcore.dispatcher import Dispatcher
from botcore.models.invocation import ChatEvent, Reply, UserRef

logger = logging.getLogger("discord_bot")

# Discord rejects message content above 2000 characters
MAX_MESSAGE_LENGTH = 2000


def event_from_message(message: discord.Message) -> ChatEvent | None:
    """Map a Discord message to a ChatEvent.

    The guild is the channel scope: points and custom commands are shared
    by every text channel of a server. DMs and bot authors return None.
    """
    guild = message.guild
    author = message.author
    if guild is None or author.bot:
        return None

    perms = getattr(author, "guild_permissions", None)
    is_owner = guild.owner_id == author.id or bool(perms and perms.administrator)
    is_moderator = bool(perms and (perms.manage_messages or perms.moderate_members))

    return ChatEvent(
        channel_id=str(guild.id),
        user_id=str(author.id),
        username=author.display_name,
        raw_message=message.content or "",
        is_moderator=is_moderator,
        is_owner=is_owner,
        channel_name=guild.name,
        platform="discord",
        mentions=tuple(UserRef(str(m.id), m.display_name) for m in message.mentions),
    )


def reply_kwargs(reply: Reply) -> dict:
    """Build ``Message.reply`` arguments, embeds as ``discord.Embed``."""
    kwargs: dict = {"mention_author": False}
    if reply.embed:
        kwargs["embed"] = discord.Embed.from_dict(reply.embed)
        if reply.text:
            kwargs["content"] = reply.text[:MAX_MESSAGE_LENGTH]
    else:
        kwargs["content"] = (reply.text or "")[:MAX_MESSAGE_LENGTH]
    return kwargs


class DispatchClient(discord.Client):
    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        status: discord.Status | None = None,
        activity: discord.Activity | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True  # privileged intent, required to read commands
        super().__init__(intents=intents, status=status, activity=activity)
        self.dispatcher = dispatcher

    async def on_ready(self) -> None:
        logger.info(f"Bot ready: {self.user} (ID: {self.user.id if self.user else '?'})")
        logger.info(f"Connected to {len(self.guilds)} guild(s) | discord.py {discord.__version__}")

    async def on_message(self, message: discord.Message) -> None:
        event = event_from_message(message)
        if event is None:
            return

        result = await self.dispatcher.dispatch(event)
        if result.reply is None:
            return

        kwargs = reply_kwargs(result.reply)
        if not kwargs.get("content") and "embed" not in kwargs:
            return
        try:
            await message.reply(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to send reply in {event.channel_name}: {e}")
