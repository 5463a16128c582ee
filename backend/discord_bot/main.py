"""Discord connector entry point (``chatbot-discord``)."""

import asyncio
import logging

from botcore.config import get_settings as get_dispatch_settings
from botcore.engine import build_engine
from botcore.logging import setup_logging
from discord_bot.bot import DispatchClient
from discord_bot.config import get_settings

logger = logging.getLogger("discord_bot")


async def run() -> None:
    settings = get_settings()
    engine = await build_engine(get_dispatch_settings(), service="discord")
    try:
        async with DispatchClient(
            engine.dispatcher,
            status=settings.get_status(),
            activity=settings.get_activity(),
        ) as client:
            await client.start(settings.discord_bot_token)
    finally:
        await engine.close()


def main() -> None:
    setup_logging(get_dispatch_settings().log_level)
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Bot stopped manually")


if __name__ == "__main__":
    main()
