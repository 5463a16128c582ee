"""Logging configuration shared by both connectors"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = {
    "twitchio": logging.INFO,
    "twitchio.http": logging.WARNING,
    "twitchio.websockets": logging.WARNING,
    "discord": logging.WARNING,
    "discord.http": logging.WARNING,
    "asyncpg": logging.WARNING,
    "httpx": logging.WARNING,
    "asyncio": logging.ERROR,
}


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging with a Rich handler"""
    level = getattr(logging, log_level.upper(), logging.INFO)

    try:
        console = Console(force_terminal=True, width=120)

        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            tracebacks_width=120,
        )
        rich_handler.setFormatter(
            logging.Formatter(fmt="%(name)s: %(message)s", datefmt="[%Y-%m-%d %H:%M:%S]")
        )

        logging.basicConfig(
            level=level,
            format="%(message)s",
            datefmt="[%Y-%m-%d %H:%M:%S]",
            handlers=[rich_handler],
            force=True,
        )
    except Exception as e:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            force=True,
        )
        logging.getLogger(__name__).warning(
            f"Rich logging setup failed: {e}, using standard logging"
        )

    if level == logging.DEBUG:
        logging.getLogger("twitchio").setLevel(logging.DEBUG)
        logging.getLogger("discord").setLevel(logging.INFO)
        return

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
