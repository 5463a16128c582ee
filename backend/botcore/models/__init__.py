"""Data models for the dispatch core."""

from .command import Command, CustomCommand, Handler, Permission
from .invocation import ChatEvent, Invocation, Reply, UserRef
from .points import (
    LeaderboardEntry,
    PointsEntry,
    TransferResult,
    XpResult,
    level_for_xp,
    xp_for_level,
)

__all__ = [
    "ChatEvent",
    "Command",
    "CustomCommand",
    "Handler",
    "Invocation",
    "LeaderboardEntry",
    "Permission",
    "PointsEntry",
    "Reply",
    "TransferResult",
    "UserRef",
    "XpResult",
    "level_for_xp",
    "xp_for_level",
]
