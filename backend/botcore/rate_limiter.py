"""Cooldown tracking for command dispatch.

Entries map a scope key to the monotonic time at which its window ends.
Expired entries are treated as absent and dropped when seen, or in bulk
by :meth:`CooldownTracker.sweep`.

Scope keys:
    ``{channel}:user:{user_id}``              global per-user window
    ``{channel}:cmd:{name}:user:{user_id}``   per-command per-user window
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

LOGGER = logging.getLogger("CooldownTracker")


@dataclass(frozen=True)
class CooldownResult:
    ok: bool
    scope: str | None = None
    remaining: float = 0.0

    @property
    def remaining_seconds(self) -> int:
        """Remaining time rounded up, for display (always >= 1 when blocked)."""
        if self.ok:
            return 0
        return max(1, math.ceil(self.remaining))


ALLOWED = CooldownResult(ok=True)


def user_scope(channel_id: str, user_id: str) -> str:
    return f"{channel_id}:user:{user_id}"


def command_scope(channel_id: str, command_name: str, user_id: str) -> str:
    return f"{channel_id}:cmd:{command_name}:user:{user_id}"


class CooldownTracker:
    """In-memory cooldown map with atomic check-and-consume."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at: dict[str, float] = {}
        # Single lock: check + consume must not interleave for one key
        self._lock = threading.Lock()

    def check_and_consume(self, scope: str, cooldown_seconds: float) -> CooldownResult:
        """Check a single scope and open a new window if it is free."""
        return self.check_and_consume_many([(scope, cooldown_seconds)])

    def check_and_consume_many(
        self, windows: Iterable[tuple[str, float]]
    ) -> CooldownResult:
        """Check scopes in order; record windows only if every scope passes.

        Scopes with a cooldown <= 0 are skipped. The first blocked scope
        short-circuits and is reported.
        """
        active = [(scope, float(cd)) for scope, cd in windows if cd and cd > 0]
        if not active:
            return ALLOWED

        with self._lock:
            now = self._clock()
            for scope, _ in active:
                expires_at = self._expires_at.get(scope)
                if expires_at is None:
                    continue
                if now >= expires_at:
                    del self._expires_at[scope]
                    continue
                return CooldownResult(ok=False, scope=scope, remaining=expires_at - now)

            for scope, cooldown in active:
                self._expires_at[scope] = now + cooldown

        return ALLOWED

    def remaining(self, scope: str) -> float:
        """Seconds left on *scope* (0.0 when free)."""
        with self._lock:
            expires_at = self._expires_at.get(scope)
            if expires_at is None:
                return 0.0
            left = expires_at - self._clock()
            if left <= 0:
                del self._expires_at[scope]
                return 0.0
            return left

    def reset(self, scope: str) -> None:
        with self._lock:
            self._expires_at.pop(scope, None)

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, v in self._expires_at.items() if now >= v]
            for key in expired:
                del self._expires_at[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._expires_at)

    async def run_sweeper(self, interval: float = 60.0) -> None:
        """Periodically sweep expired entries until cancelled."""
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if removed:
                LOGGER.debug(f"Swept {removed} expired cooldown(s), {len(self)} active")
