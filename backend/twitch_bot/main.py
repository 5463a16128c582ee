"""Twitch connector entry point (``chatbot-twitch``)."""

import asyncio
import logging

from twitchio import eventsub

from botcore.config import get_settings as get_dispatch_settings
from botcore.engine import build_engine
from botcore.logging import setup_logging
from twitch_bot.bot import TwitchBot
from twitch_bot.config import get_settings

LOGGER: logging.Logger = logging.getLogger("TwitchBot")


def main() -> None:
    dispatch_settings = get_dispatch_settings()
    setup_logging(dispatch_settings.log_level)
    settings = get_settings()

    async def runner() -> None:
        engine = await build_engine(dispatch_settings, service="twitch")
        try:
            subs: list[eventsub.SubscriptionPayload] = [
                eventsub.ChatMessageSubscription(
                    broadcaster_user_id=channel_id, user_id=settings.bot_id
                )
                for channel_id in settings.channel_ids
                if channel_id != settings.bot_id
            ]
            LOGGER.info(f"Starting bot with {len(subs)} initial subscriptions")

            async with TwitchBot(
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                bot_id=settings.bot_id,
                owner_id=settings.owner_id,
                conduit_id=settings.conduit_id or None,
                dispatcher=engine.dispatcher,
                subs=subs,
            ) as bot:
                await bot.start()
        finally:
            await engine.close()

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
