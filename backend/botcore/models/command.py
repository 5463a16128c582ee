"""Data models for static and custom commands."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from botcore.dispatcher import CommandContext
    from botcore.models.invocation import Reply, UserRef

Handler = Callable[["CommandContext"], Awaitable["Reply | str | None"]]


def apply_prefix(syntax: str, prefix: str) -> str:
    """Prefix a usage line. ``{p}`` inside *syntax* marks further command names."""
    return prefix + syntax.replace("{p}", prefix)


class Permission(str, Enum):
    """Minimum role needed to run a command (lowest to highest)."""

    EVERYONE = "everyone"
    MODERATOR = "moderator"
    OWNER = "owner"


@dataclass(frozen=True)
class Command:
    """Built-in command, registered once at start-up."""

    name: str
    handler: Handler
    description: str = ""
    usage: str = ""  # written without the prefix, e.g. "donner @pseudo montant"
    cooldown_seconds: int | None = None  # None = channel default
    permission: Permission = Permission.EVERYONE
    aliases: tuple[str, ...] = field(default_factory=tuple)

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def syntax(self, prefix: str) -> str:
        return apply_prefix(self.usage or self.name, prefix)


@dataclass
class CustomCommand:
    """Moderator-defined response command, stored per channel."""

    channel_id: str
    name: str
    response_template: str
    created_by: UserRef
    cooldown_seconds: int | None = None
    permission: Permission = Permission.EVERYONE
    created_at: datetime | None = None
    updated_at: datetime | None = None
