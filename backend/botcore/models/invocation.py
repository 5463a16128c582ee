"""Inbound chat events, parsed invocations and outbound replies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class UserRef:
    """A chat user as seen by a connector."""

    user_id: str
    username: str


@dataclass(frozen=True)
class ChatEvent:
    """One chat message delivered by a connector.

    Connectors fill ``is_moderator`` / ``is_owner`` from their own
    permission model; nothing downstream looks at platform data.
    """

    channel_id: str
    user_id: str
    username: str
    raw_message: str
    is_moderator: bool = False
    is_owner: bool = False
    channel_name: str = ""
    platform: str = ""
    mentions: tuple[UserRef, ...] = field(default_factory=tuple)

    @property
    def author(self) -> UserRef:
        return UserRef(self.user_id, self.username)


@dataclass(frozen=True)
class Invocation:
    """A parsed, in-flight command request."""

    channel_id: str
    user_id: str
    username: str
    is_moderator: bool
    is_owner: bool
    command_name: str
    args: tuple[str, ...]
    raw_message: str
    arg_text: str = ""
    channel_name: str = ""
    platform: str = ""
    mentions: tuple[UserRef, ...] = field(default_factory=tuple)

    @property
    def author(self) -> UserRef:
        return UserRef(self.user_id, self.username)

    @property
    def is_privileged(self) -> bool:
        return self.is_moderator or self.is_owner


@dataclass(frozen=True)
class Reply:
    """Reply payload: plain text and/or a structured embed."""

    text: str | None = None
    embed: dict[str, Any] | None = None

    def as_text(self) -> str:
        """Flatten to a single chat line for text-only transports."""
        if self.text:
            return self.text
        if not self.embed:
            return ""
        parts = [self.embed.get("title", "")]
        if self.embed.get("description"):
            parts.append(" ".join(self.embed["description"].split("\n")))
        for f in self.embed.get("fields", []):
            parts.append(f"{f.get('name', '')}: {f.get('value', '')}")
        return " | ".join(p for p in parts if p)
