"""Built-in chat commands, registered once at start-up."""

from __future__ import annotations

import httpx

from botcore.registry import CommandRegistry

from .command_manager import CommandManager
from .general import GeneralCommands
from .points import PointsCommands
from .poll import PollCommands
from .weather import WeatherCommands

__all__ = [
    "CommandManager",
    "GeneralCommands",
    "PointsCommands",
    "PollCommands",
    "WeatherCommands",
    "close_components",
    "register_builtin_commands",
]


def register_builtin_commands(
    registry: CommandRegistry, *, http_client: httpx.AsyncClient | None = None
) -> list:
    """Register every built-in command and return the components.

    The caller owns the components: pass them to :func:`close_components`
    on shutdown.
    """
    components = [
        GeneralCommands(),
        PointsCommands(),
        PollCommands(),
        WeatherCommands(http_client),
        CommandManager(),
    ]
    for component in components:
        for command in component.commands():
            registry.register_static(command)
    return components


async def close_components(components: list) -> None:
    for component in components:
        aclose = getattr(component, "aclose", None)
        if aclose is not None:
            await aclose()
