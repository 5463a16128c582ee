"""Twitch Bot class: maps chat messages to ChatEvents and sends replies."""

from __future__ import annotations

import logging

import twitchio
from twitchio import eventsub
from twitchio.ext import commands

from botcore.dispatcher import Dispatcher
from botcore.models.invocation import ChatEvent, Reply

LOGGER = logging.getLogger("TwitchBot")

# Twitch rejects chat messages above 500 characters
MAX_MESSAGE_LENGTH = 500


def event_from_chat_message(payload: twitchio.ChatMessage) -> ChatEvent | None:
    """Map a Twitch chat message to a ChatEvent. None for non-channel messages."""
    broadcaster = payload.broadcaster
    chatter = payload.chatter
    if broadcaster is None or chatter is None:
        return None

    channel_id = str(broadcaster.id)
    user_id = str(chatter.id)
    return ChatEvent(
        channel_id=channel_id,
        user_id=user_id,
        username=chatter.display_name or chatter.name or user_id,
        raw_message=payload.text or "",
        is_moderator=bool(getattr(chatter, "moderator", False)),
        is_owner=user_id == channel_id,
        channel_name=broadcaster.name or "",
        platform="twitch",
    )


def chat_text(reply: Reply) -> str:
    text = reply.as_text()
    if len(text) > MAX_MESSAGE_LENGTH:
        text = text[: MAX_MESSAGE_LENGTH - 1] + "…"
    return text


class TwitchBot(commands.AutoBot):
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        bot_id: str,
        owner_id: str,
        conduit_id: str | None,
        dispatcher: Dispatcher,
        subs: list[eventsub.SubscriptionPayload],
    ) -> None:
        self.dispatcher = dispatcher
        self._subscribed_channels: set[str] = set()

        init_kwargs: dict = dict(
            client_id=client_id,
            client_secret=client_secret,
            bot_id=bot_id,
            owner_id=owner_id,
            prefix=dispatcher.policy.prefix,
            subscriptions=subs,
            force_subscribe=True,
        )
        if conduit_id:
            init_kwargs["conduit_id"] = conduit_id

        super().__init__(**init_kwargs)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def event_ready(self) -> None:
        LOGGER.info("Successfully logged in as: %s", self.bot_id)

    async def event_eventsub_error(self, error: Exception) -> None:
        LOGGER.error(f"EventSub error: {error}")

    async def event_oauth_authorized(
        self, payload: twitchio.authentication.UserTokenPayload
    ) -> None:
        await self.add_token(payload.access_token, payload.refresh_token)

        if not payload.user_id:
            return

        if payload.user_id == self.bot_id:
            LOGGER.info("Bot account authorized")
            return

        await self.subscribe_channel(payload.user_id)

    async def event_message(self, payload: twitchio.ChatMessage) -> None:
        event = event_from_chat_message(payload)
        if event is None:
            LOGGER.debug(f"Ignoring message outside a channel: {payload.text}")
            return

        # Our own replies come back through EventSub
        if event.user_id == str(self.bot_id):
            return

        LOGGER.debug(f"[{event.username}#{event.channel_name}]: {event.raw_message}")

        result = await self.dispatcher.dispatch(event)
        if result.reply is None:
            return

        text = chat_text(result.reply)
        if not text:
            return
        try:
            await payload.broadcaster.send_message(
                message=text,
                sender=self.bot_id,
                token_for=self.bot_id,
                reply_to_message_id=str(payload.id),
            )
        except twitchio.HTTPException as e:
            LOGGER.error(f"Failed to send reply in {event.channel_name}: {e}")

    # ------------------------------------------------------------------
    # Channel management
    # ------------------------------------------------------------------

    async def subscribe_channel(self, broadcaster_user_id: str) -> None:
        if broadcaster_user_id in self._subscribed_channels:
            LOGGER.debug(f"Already subscribed: {broadcaster_user_id}")
            return

        resp = await self.multi_subscribe(
            [
                eventsub.ChatMessageSubscription(
                    broadcaster_user_id=broadcaster_user_id, user_id=self.bot_id
                )
            ]
        )
        non_conflict = [e for e in resp.errors if "409" not in str(e)]
        if non_conflict:
            LOGGER.warning(f"Subscription errors for {broadcaster_user_id}: {non_conflict}")
            return

        self._subscribed_channels.add(broadcaster_user_id)
        LOGGER.info(f"Subscribed to chat for channel: {broadcaster_user_id}")
