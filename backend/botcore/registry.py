"""Command registry: built-in commands plus per-channel custom commands.

Built-ins are registered once at start-up. Custom commands live in the
persistence gateway and are cached per channel; every write through the
registry invalidates that channel's cache entry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from botcore.cache import AsyncTTLCache
from botcore.errors import DuplicateCommand, InvalidCommandName, PersistenceUnavailable, ReservedName
from botcore.gateway import PersistenceGateway
from botcore.models.command import Command, CustomCommand, Permission
from botcore.models.invocation import UserRef

LOGGER = logging.getLogger("CommandRegistry")

_NAME_PATTERN = re.compile(r"^[^\s\"]{1,32}$")


class ResolutionKind(str, Enum):
    STATIC = "static"
    CUSTOM = "custom"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    command: Command | None = None
    custom: CustomCommand | None = None

    @property
    def found(self) -> bool:
        return self.kind is not ResolutionKind.NOT_FOUND

    @property
    def name(self) -> str | None:
        if self.command:
            return self.command.name
        if self.custom:
            return self.custom.name
        return None


NOT_FOUND = Resolution(ResolutionKind.NOT_FOUND)


def normalize_name(name: str, prefix: str = "!") -> str:
    """``"!Salut"`` -> ``"salut"``. Raises InvalidCommandName."""
    cleaned = name.strip()
    if prefix and cleaned.startswith(prefix):
        cleaned = cleaned[len(prefix) :]
    cleaned = cleaned.lower()
    if not _NAME_PATTERN.match(cleaned):
        raise InvalidCommandName(name)
    return cleaned


class CommandRegistry:
    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        prefix: str = "!",
        cache_ttl: float = 300.0,
        cache_size: int = 256,
    ) -> None:
        self.gateway = gateway
        self.prefix = prefix
        self._static: dict[str, Command] = {}
        self._primary: list[Command] = []
        self._custom_cache = AsyncTTLCache(maxsize=cache_size, ttl=cache_ttl)

    # ==================== Static commands ====================

    def register_static(self, command: Command) -> None:
        """Register a built-in. Names and aliases must be unique."""
        names = [normalize_name(n, prefix="") for n in command.names]
        for name in names:
            if name in self._static:
                raise DuplicateCommand(name)
        if len(set(names)) != len(names):
            raise DuplicateCommand(command.name)
        for name in names:
            self._static[name] = command
        self._primary.append(command)
        LOGGER.debug(f"Registered !{command.name} (aliases: {', '.join(command.aliases) or '-'})")

    def get_static(self, name: str) -> Command | None:
        return self._static.get(name.lower())

    def is_reserved(self, name: str) -> bool:
        return name.lower() in self._static

    @property
    def static_commands(self) -> list[Command]:
        """Built-ins in registration order (one entry per command, not per alias)."""
        return list(self._primary)

    # ==================== Custom commands ====================

    def _cache_key(self, channel_id: str) -> str:
        return f"custom:{channel_id}"

    async def _custom_for(self, channel_id: str) -> dict[str, CustomCommand]:
        try:
            return await self._custom_cache.get_or_load(
                self._cache_key(channel_id),
                lambda: self.gateway.load_custom_commands(channel_id),
            )
        except PersistenceUnavailable:
            raise
        except Exception as e:
            raise PersistenceUnavailable("load_custom_commands", e) from e

    async def resolve(self, channel_id: str, name: str) -> Resolution:
        """Static lookup first (reserved names), then the channel's custom commands."""
        name = name.lower()
        command = self._static.get(name)
        if command is not None:
            return Resolution(ResolutionKind.STATIC, command=command)

        custom = (await self._custom_for(channel_id)).get(name)
        if custom is not None:
            return Resolution(ResolutionKind.CUSTOM, custom=custom)
        return NOT_FOUND

    async def list_custom(self, channel_id: str) -> list[CustomCommand]:
        commands = await self._custom_for(channel_id)
        return [commands[k] for k in sorted(commands)]

    async def get_custom(self, channel_id: str, name: str) -> CustomCommand | None:
        return (await self._custom_for(channel_id)).get(name.lower())

    async def upsert_custom(
        self,
        channel_id: str,
        name: str,
        template: str,
        author: UserRef,
        *,
        cooldown_seconds: int | None = None,
        permission: Permission = Permission.EVERYONE,
    ) -> CustomCommand:
        """Create or overwrite a custom command. Raises ReservedName for built-in names."""
        cmd_name = normalize_name(name, self.prefix)
        if self.is_reserved(cmd_name):
            raise ReservedName(cmd_name)
        if not template.strip():
            raise ValueError("Custom command response cannot be empty")

        stored = await self.gateway.save_custom_command(
            CustomCommand(
                channel_id=channel_id,
                name=cmd_name,
                response_template=template.strip(),
                created_by=author,
                cooldown_seconds=cooldown_seconds,
                permission=permission,
            )
        )
        self.invalidate(channel_id)
        LOGGER.info(f"Custom command saved: !{cmd_name} in {channel_id} by {author.username}")
        return stored

    async def remove_custom(self, channel_id: str, name: str) -> bool:
        """Delete a custom command. True if a record was removed."""
        try:
            cmd_name = normalize_name(name, self.prefix)
        except InvalidCommandName:
            return False
        deleted = await self.gateway.delete_custom_command(channel_id, cmd_name)
        self.invalidate(channel_id)
        if deleted:
            LOGGER.info(f"Custom command deleted: !{cmd_name} in {channel_id}")
        return deleted

    def invalidate(self, channel_id: str) -> None:
        self._custom_cache.invalidate(self._cache_key(channel_id))

    def invalidate_all(self) -> None:
        self._custom_cache.clear()
