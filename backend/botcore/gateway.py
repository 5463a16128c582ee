"""Storage boundary for points, XP and custom commands.

The dispatcher and command handlers only talk to this interface.
Concrete backends live in :mod:`botcore.backends`; each one is
responsible for its own write serialization (balance changes are
atomic increments, never read-then-write in the caller).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from botcore.models.command import CustomCommand
from botcore.models.points import LeaderboardEntry, TransferResult, XpResult


@runtime_checkable
class PersistenceGateway(Protocol):
    # ==================== Points ====================

    async def get_balance(self, channel_id: str, user_id: str) -> int:
        """Current balance, 0 for unknown users."""
        ...

    async def add_points(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> int:
        """Add *amount* (> 0) and return the new balance."""
        ...

    async def remove_points(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> int:
        """Remove up to *amount* (> 0), clamped at 0. Returns the amount actually removed."""
        ...

    async def transfer(
        self,
        channel_id: str,
        from_user: str,
        to_user: str,
        amount: int,
        *,
        from_username: str | None = None,
        to_username: str | None = None,
    ) -> TransferResult:
        """Move points between two users atomically."""
        ...

    async def get_leaderboard(self, channel_id: str, limit: int = 10) -> list[LeaderboardEntry]:
        """Top balances, descending; ties keep insertion order."""
        ...

    async def find_user_id(self, channel_id: str, username: str) -> str | None:
        """Look up a known user of *channel_id* by name (case-insensitive)."""
        ...

    # ==================== XP ====================

    async def add_xp(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> XpResult: ...

    async def get_xp(self, channel_id: str, user_id: str) -> int: ...

    # ==================== Custom commands ====================

    async def load_custom_commands(self, channel_id: str) -> dict[str, CustomCommand]: ...

    async def save_custom_command(self, command: CustomCommand) -> CustomCommand:
        """Insert or update; returns the stored record (``created_at`` preserved)."""
        ...

    async def delete_custom_command(self, channel_id: str, name: str) -> bool: ...
