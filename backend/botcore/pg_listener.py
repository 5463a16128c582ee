"""PostgreSQL LISTEN helper with auto-reconnect.

Used to drop cached custom commands when another process (or a manual SQL
edit) changes them; the ``custom_commands`` trigger sends the channel id
as the NOTIFY payload.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import asyncpg

LOGGER = logging.getLogger("PgListener")

CUSTOM_COMMAND_CHANNEL = "custom_command_change"


async def _detach(pool: asyncpg.Pool, connection: asyncpg.Connection, channel: str, callback) -> None:
    """Remove the listener and hand the connection back, terminating it if that fails."""
    try:
        await connection.remove_listener(channel, callback)
        await pool.release(connection)
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        LOGGER.debug(f"Dropping LISTEN connection for '{channel}': {e}")
        connection.terminate()


async def pg_listen(
    pool: asyncpg.Pool,
    channel: str,
    on_payload: Callable[[str], None],
    *,
    keepalive_interval: int = 30,
    reconnect_delay: int = 10,
) -> None:
    """Listen on a NOTIFY channel until cancelled, reconnecting on errors.

    Args:
        pool: asyncpg connection pool.
        channel: PostgreSQL NOTIFY channel name.
        on_payload: Called with each notification payload.
        keepalive_interval: Seconds between keepalive pings.
        reconnect_delay: Seconds to wait before reconnecting after an error.
    """

    def _callback(_connection, _pid, _channel, payload: str) -> None:
        try:
            on_payload(payload)
        except Exception:
            LOGGER.exception(f"NOTIFY handler for '{channel}' failed")

    while True:
        connection: asyncpg.Connection | None = None
        try:
            connection = await pool.acquire()
            await connection.add_listener(channel, _callback)
            LOGGER.info(f"PostgreSQL LISTEN active on '{channel}' channel")

            while True:
                await asyncio.sleep(keepalive_interval)
                await connection.execute("SELECT 1")

        except asyncio.CancelledError:
            LOGGER.info(f"PostgreSQL LISTEN '{channel}' shutting down...")
            if connection is not None:
                await _detach(pool, connection, channel, _callback)
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            LOGGER.error(f"Error in pg_listen('{channel}'): {e}")
            LOGGER.warning(f"Reconnecting to PostgreSQL LISTEN '{channel}' in {reconnect_delay}s...")
            if connection is not None:
                connection.terminate()
                await pool.release(connection)
            await asyncio.sleep(reconnect_delay)
