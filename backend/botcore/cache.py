"""TTL cache that keeps serving expired values while the loader is failing.

The command registry holds one entry per channel: that channel's table of
custom commands. Fresh entries live in a cachetools ``TTLCache``; every value
ever stored is also kept in a bounded last-known-good map, read only when a
reload fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Cached values may legitimately be None or empty
MISSING = object()


class AsyncTTLCache:
    def __init__(self, maxsize: int = 128, ttl: float = 60.0) -> None:
        self.maxsize = maxsize
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._last_good: OrderedDict[str, Any] = OrderedDict()
        self._loading: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._fresh)

    @property
    def stale_size(self) -> int:
        return len(self._last_good)

    def get(self, key: str) -> Any:
        return self._fresh.get(key, MISSING)

    def get_stale(self, key: str) -> Any:
        if key not in self._last_good:
            return MISSING
        self._last_good.move_to_end(key)
        return self._last_good[key]

    def set(self, key: str, value: Any) -> None:
        self._fresh[key] = value
        self._last_good[key] = value
        self._last_good.move_to_end(key)
        if len(self._last_good) > self.maxsize:
            self._last_good.popitem(last=False)

    def invalidate(self, key: str) -> None:
        """Force the next read of *key* to reload. The last-known-good value stays."""
        self._fresh.pop(key, None)

    def clear(self) -> None:
        self._fresh.clear()

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        *,
        retry: int = 1,
        retry_delay: float = 1.0,
    ) -> Any:
        """Return the fresh value for *key* or load it.

        Concurrent misses on one key wait for a single load. When all
        *retry* attempts fail the last-known-good value is returned, or the
        last error is raised if there is none.
        """
        value = self.get(key)
        if value is not MISSING:
            return value

        lock = self._loading.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                value = self.get(key)
                if value is not MISSING:
                    return value
                return await self._load(key, loader, max(retry, 1), retry_delay)
        finally:
            if self._loading.get(key) is lock and not lock.locked():
                del self._loading[key]

    async def _load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        attempts: int,
        retry_delay: float,
    ) -> Any:
        error: Exception | None = None
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                await asyncio.sleep(retry_delay * (attempt - 1))
            try:
                value = await loader()
            except Exception as e:
                error = e
                logger.warning(f"Loading {key} failed ({attempt}/{attempts}): {e!r}")
                continue
            self.set(key, value)
            return value

        stale = self.get_stale(key)
        if stale is MISSING:
            raise error  # type: ignore[misc]
        logger.warning(f"[CACHE] Serving last known value of {key} ({type(error).__name__})")
        return stale
