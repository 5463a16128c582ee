"""In-process persistence backend (development, tests, single-process bots)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from botcore.errors import PersistenceUnavailable
from botcore.models.command import CustomCommand
from botcore.models.points import (
    LeaderboardEntry,
    PointsEntry,
    TransferResult,
    XpResult,
    level_for_xp,
)

logger = logging.getLogger(__name__)


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"Amount must be a positive integer, got {amount!r}")


class MemoryGateway:
    """Dict-backed gateway; every mutation runs under one asyncio lock.

    Ledger entries keep insertion order, which is what breaks
    leaderboard ties.
    """

    def __init__(self) -> None:
        self._ledger: dict[tuple[str, str], PointsEntry] = {}
        self._custom: dict[str, dict[str, CustomCommand]] = {}
        self._lock = asyncio.Lock()

    async def _after_write(self) -> None:
        """Hook for persisting subclasses; called with the lock held."""

    def _checkpoint(self) -> Any:
        """State to restore if ``_after_write`` fails. None: nothing to restore."""
        return None

    def _restore(self, checkpoint: Any) -> None:
        ledger, custom = checkpoint
        self._ledger.clear()
        self._ledger.update(ledger)
        self._custom.clear()
        self._custom.update(custom)

    async def _commit(self, checkpoint: Any) -> None:
        try:
            await self._after_write()
        except PersistenceUnavailable:
            if checkpoint is not None:
                self._restore(checkpoint)
            raise

    def _entry(self, channel_id: str, user_id: str, username: str | None) -> PointsEntry:
        key = (channel_id, user_id)
        entry = self._ledger.get(key)
        if entry is None:
            entry = PointsEntry(channel_id, user_id, username or user_id)
            self._ledger[key] = entry
        elif username:
            entry.username = username
        return entry

    # ==================== Points ====================

    async def get_balance(self, channel_id: str, user_id: str) -> int:
        entry = self._ledger.get((channel_id, user_id))
        return entry.balance if entry else 0

    async def add_points(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> int:
        _check_amount(amount)
        async with self._lock:
            checkpoint = self._checkpoint()
            entry = self._entry(channel_id, user_id, username)
            entry.balance += amount
            await self._commit(checkpoint)
            return entry.balance

    async def remove_points(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> int:
        _check_amount(amount)
        async with self._lock:
            checkpoint = self._checkpoint()
            entry = self._entry(channel_id, user_id, username)
            removed = min(amount, entry.balance)
            entry.balance -= removed
            await self._commit(checkpoint)
            return removed

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
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            return TransferResult.INVALID_AMOUNT
        if from_user == to_user:
            return TransferResult.SAME_USER

        async with self._lock:
            source = self._ledger.get((channel_id, from_user))
            if source is None or source.balance < amount:
                return TransferResult.INSUFFICIENT_FUNDS
            checkpoint = self._checkpoint()
            if from_username:
                source.username = from_username
            target = self._entry(channel_id, to_user, to_username)
            source.balance -= amount
            target.balance += amount
            await self._commit(checkpoint)
        return TransferResult.OK

    async def get_leaderboard(self, channel_id: str, limit: int = 10) -> list[LeaderboardEntry]:
        entries = [
            e for e in self._ledger.values() if e.channel_id == channel_id and e.balance > 0
        ]
        # sorted() is stable: equal balances keep insertion order
        entries = sorted(entries, key=lambda e: e.balance, reverse=True)
        return [LeaderboardEntry(e.username, e.balance) for e in entries[:limit]]

    async def find_user_id(self, channel_id: str, username: str) -> str | None:
        wanted = username.lower()
        for entry in self._ledger.values():
            if entry.channel_id == channel_id and entry.username.lower() == wanted:
                return entry.user_id
        return None

    # ==================== XP ====================

    async def add_xp(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> XpResult:
        _check_amount(amount)
        async with self._lock:
            checkpoint = self._checkpoint()
            entry = self._entry(channel_id, user_id, username)
            before = level_for_xp(entry.xp)
            entry.xp += amount
            await self._commit(checkpoint)
            after = level_for_xp(entry.xp)
            return XpResult(xp=entry.xp, level=after, leveled_up=after > before)

    async def get_xp(self, channel_id: str, user_id: str) -> int:
        entry = self._ledger.get((channel_id, user_id))
        return entry.xp if entry else 0

    # ==================== Custom commands ====================

    async def load_custom_commands(self, channel_id: str) -> dict[str, CustomCommand]:
        return {name: replace(cmd) for name, cmd in self._custom.get(channel_id, {}).items()}

    async def save_custom_command(self, command: CustomCommand) -> CustomCommand:
        now = datetime.now(timezone.utc)
        async with self._lock:
            checkpoint = self._checkpoint()
            channel = self._custom.setdefault(command.channel_id, {})
            existing = channel.get(command.name)
            stored = replace(
                command,
                created_at=existing.created_at if existing else (command.created_at or now),
                updated_at=now,
            )
            channel[command.name] = stored
            await self._commit(checkpoint)
        return replace(stored)

    async def delete_custom_command(self, channel_id: str, name: str) -> bool:
        async with self._lock:
            channel = self._custom.get(channel_id, {})
            if name not in channel:
                return False
            checkpoint = self._checkpoint()
            del channel[name]
            await self._commit(checkpoint)
        return True
