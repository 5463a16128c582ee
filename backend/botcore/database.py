"""asyncpg pool backing the points ledger and custom commands.

A database URL on port 6543 is treated as a PgBouncer transaction pooler:
no prepared statement cache and no idle connections kept open.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import asyncpg

if TYPE_CHECKING:
    from botcore.config import DispatchSettings

logger = logging.getLogger(__name__)

TRANSACTION_POOLER_PORT = 6543

_CONNECT_ERRORS = (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError)


@dataclass(frozen=True)
class PoolOptions:
    max_size: int = 5
    command_timeout: float = 15.0
    connect_attempts: int = 3
    retry_delay: float = 2.0

    @classmethod
    def from_settings(cls, settings: DispatchSettings) -> PoolOptions:
        return cls(
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
            connect_attempts=settings.db_connect_attempts,
        )


def uses_transaction_pooler(database_url: str) -> bool:
    try:
        return urlsplit(database_url).port == TRANSACTION_POOLER_PORT
    except ValueError:
        return False


def pool_kwargs(database_url: str, options: PoolOptions) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "dsn": database_url,
        "min_size": 1,
        "max_size": options.max_size,
        "command_timeout": options.command_timeout,
    }
    if uses_transaction_pooler(database_url):
        kwargs.update(min_size=0, statement_cache_size=0, max_inactive_connection_lifetime=0)
    return kwargs


async def open_pool(
    database_url: str,
    options: PoolOptions | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> asyncpg.Pool:
    """Create the pool and run ``SELECT 1`` through it, retrying with backoff.

    Raises the last connection error once every attempt has failed.
    """
    options = options or PoolOptions()
    kwargs = pool_kwargs(database_url, options)
    mode = "transaction" if kwargs["min_size"] == 0 else "session"

    for attempt in range(1, options.connect_attempts + 1):
        pool: asyncpg.Pool | None = None
        try:
            pool = await asyncpg.create_pool(**kwargs)
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except _CONNECT_ERRORS as e:
            if pool is not None:
                pool.terminate()
            if attempt == options.connect_attempts:
                logger.error(f"[PERSISTENCE] Database unreachable after {attempt} attempts: {e!r}")
                raise
            delay = options.retry_delay * 2 ** (attempt - 1)
            logger.warning(
                f"Database connection attempt {attempt}/{options.connect_attempts} failed "
                f"({type(e).__name__}), retrying in {delay}s"
            )
            await sleep(delay)
        else:
            logger.info(f"Database pool ready (mode={mode}, max_size={options.max_size})")
            return pool

    raise RuntimeError("connect_attempts must be at least 1")


async def ping(pool: asyncpg.Pool, timeout: float = 2.0) -> bool:
    """True when the pool can run a query within *timeout* seconds."""
    try:
        async with pool.acquire(timeout=timeout) as conn:
            await conn.fetchval("SELECT 1")
    except _CONNECT_ERRORS:
        return False
    return True
