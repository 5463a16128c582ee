"""PostgreSQL persistence backend (asyncpg).

Balance changes are single atomic statements (``balance = balance + $n``)
so concurrent dispatches never lose updates. Transfers lock both ledger
rows in a stable order inside one transaction.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import asyncpg

from botcore.errors import PersistenceUnavailable
from botcore.models.command import CustomCommand, Permission
from botcore.models.invocation import UserRef
from botcore.models.points import LeaderboardEntry, TransferResult, XpResult, level_for_xp

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

_CUSTOM_COLUMNS = (
    "channel_id, name, response_template, created_by_id, created_by_name, "
    "cooldown_seconds, permission, created_at, updated_at"
)


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"Amount must be a positive integer, got {amount!r}")


def _custom_from_row(row: asyncpg.Record) -> CustomCommand:
    return CustomCommand(
        channel_id=row["channel_id"],
        name=row["name"],
        response_template=row["response_template"],
        created_by=UserRef(row["created_by_id"], row["created_by_name"]),
        cooldown_seconds=row["cooldown_seconds"],
        permission=Permission(row["permission"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def _run(
    operation: str,
    func: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 1,
    delay: float = 0.5,
) -> T:
    """Run a DB call, retrying idempotent ones, and map driver errors."""
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except asyncio.CancelledError:
            raise
        except _DB_ERRORS as e:
            if attempt < max_attempts:
                logger.warning(
                    f"DB operation {operation} attempt {attempt}/{max_attempts} failed: "
                    f"{type(e).__name__}, retrying in {delay * attempt}s..."
                )
                await asyncio.sleep(delay * attempt)
                continue
            logger.error(f"[PERSISTENCE] {operation} failed: {type(e).__name__}: {e}")
            raise PersistenceUnavailable(operation, e) from e
    raise AssertionError("unreachable")


class PostgresGateway:
    """Pure SQL implementation of the persistence gateway."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Points ====================

    async def get_balance(self, channel_id: str, user_id: str) -> int:
        async def _query() -> int:
            async with self.pool.acquire() as conn:
                value = await conn.fetchval(
                    "SELECT balance FROM points_ledger WHERE channel_id = $1 AND user_id = $2",
                    channel_id,
                    user_id,
                )
                return int(value or 0)

        return await _run("get_balance", _query, max_attempts=2)

    async def add_points(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> int:
        _check_amount(amount)

        async def _query() -> int:
            async with self.pool.acquire() as conn:
                value = await conn.fetchval(
                    """
                    INSERT INTO points_ledger (channel_id, user_id, username, balance)
                    VALUES ($1, $2, COALESCE($3, $2), $4)
                    ON CONFLICT (channel_id, user_id) DO UPDATE SET
                        balance    = points_ledger.balance + EXCLUDED.balance,
                        username   = COALESCE($3, points_ledger.username),
                        updated_at = NOW()
                    RETURNING balance
                    """,
                    channel_id,
                    user_id,
                    username,
                    amount,
                )
                return int(value)

        return await _run("add_points", _query)

    async def remove_points(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> int:
        _check_amount(amount)

        async def _query() -> int:
            async with self.pool.acquire() as conn:
                value = await conn.fetchval(
                    """
                    WITH target AS (
                        SELECT id, balance FROM points_ledger
                        WHERE channel_id = $1 AND user_id = $2
                        FOR UPDATE
                    )
                    UPDATE points_ledger p SET
                        balance    = p.balance - LEAST(t.balance, $3),
                        username   = COALESCE($4, p.username),
                        updated_at = NOW()
                    FROM target t
                    WHERE p.id = t.id
                    RETURNING LEAST(t.balance, $3)
                    """,
                    channel_id,
                    user_id,
                    amount,
                    username,
                )
                return int(value or 0)

        return await _run("remove_points", _query)

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

        async def _query() -> TransferResult:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    # Lock rows in user_id order so opposite transfers can't deadlock
                    rows = await conn.fetch(
                        """
                        SELECT user_id, balance FROM points_ledger
                        WHERE channel_id = $1 AND user_id = ANY($2::text[])
                        ORDER BY user_id
                        FOR UPDATE
                        """,
                        channel_id,
                        [from_user, to_user],
                    )
                    balances = {r["user_id"]: r["balance"] for r in rows}
                    if balances.get(from_user, 0) < amount:
                        return TransferResult.INSUFFICIENT_FUNDS

                    await conn.execute(
                        """
                        UPDATE points_ledger SET
                            balance    = balance - $3,
                            username   = COALESCE($4, username),
                            updated_at = NOW()
                        WHERE channel_id = $1 AND user_id = $2
                        """,
                        channel_id,
                        from_user,
                        amount,
                        from_username,
                    )
                    await conn.execute(
                        """
                        INSERT INTO points_ledger (channel_id, user_id, username, balance)
                        VALUES ($1, $2, COALESCE($3, $2), $4)
                        ON CONFLICT (channel_id, user_id) DO UPDATE SET
                            balance    = points_ledger.balance + EXCLUDED.balance,
                            username   = COALESCE($3, points_ledger.username),
                            updated_at = NOW()
                        """,
                        channel_id,
                        to_user,
                        to_username,
                        amount,
                    )
                    return TransferResult.OK

        return await _run("transfer", _query)

    async def get_leaderboard(self, channel_id: str, limit: int = 10) -> list[LeaderboardEntry]:
        async def _query() -> list[LeaderboardEntry]:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT username, balance FROM points_ledger
                    WHERE channel_id = $1 AND balance > 0
                    ORDER BY balance DESC, id ASC
                    LIMIT $2
                    """,
                    channel_id,
                    limit,
                )
                return [LeaderboardEntry(r["username"], int(r["balance"])) for r in rows]

        return await _run("get_leaderboard", _query, max_attempts=2)

    async def find_user_id(self, channel_id: str, username: str) -> str | None:
        async def _query() -> str | None:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(
                    """
                    SELECT user_id FROM points_ledger
                    WHERE channel_id = $1 AND lower(username) = lower($2)
                    ORDER BY updated_at DESC
                    LIMIT 1
                    """,
                    channel_id,
                    username,
                )

        return await _run("find_user_id", _query, max_attempts=2)

    # ==================== XP ====================

    async def add_xp(
        self, channel_id: str, user_id: str, amount: int, *, username: str | None = None
    ) -> XpResult:
        _check_amount(amount)

        async def _query() -> XpResult:
            async with self.pool.acquire() as conn:
                xp = int(
                    await conn.fetchval(
                        """
                        INSERT INTO points_ledger (channel_id, user_id, username, xp)
                        VALUES ($1, $2, COALESCE($3, $2), $4)
                        ON CONFLICT (channel_id, user_id) DO UPDATE SET
                            xp         = points_ledger.xp + EXCLUDED.xp,
                            username   = COALESCE($3, points_ledger.username),
                            updated_at = NOW()
                        RETURNING xp
                        """,
                        channel_id,
                        user_id,
                        username,
                        amount,
                    )
                )
            level = level_for_xp(xp)
            return XpResult(xp=xp, level=level, leveled_up=level > level_for_xp(xp - amount))

        return await _run("add_xp", _query)

    async def get_xp(self, channel_id: str, user_id: str) -> int:
        async def _query() -> int:
            async with self.pool.acquire() as conn:
                value = await conn.fetchval(
                    "SELECT xp FROM points_ledger WHERE channel_id = $1 AND user_id = $2",
                    channel_id,
                    user_id,
                )
                return int(value or 0)

        return await _run("get_xp", _query, max_attempts=2)

    # ==================== Custom commands ====================

    async def load_custom_commands(self, channel_id: str) -> dict[str, CustomCommand]:
        async def _query() -> dict[str, CustomCommand]:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_CUSTOM_COLUMNS} FROM custom_commands "
                    "WHERE channel_id = $1 ORDER BY name",
                    channel_id,
                )
                return {row["name"]: _custom_from_row(row) for row in rows}

        return await _run("load_custom_commands", _query, max_attempts=2)

    async def save_custom_command(self, command: CustomCommand) -> CustomCommand:
        async def _query() -> CustomCommand:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO custom_commands
                        (channel_id, name, response_template, created_by_id,
                         created_by_name, cooldown_seconds, permission)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    ON CONFLICT (channel_id, name) DO UPDATE SET
                        response_template = EXCLUDED.response_template,
                        cooldown_seconds  = EXCLUDED.cooldown_seconds,
                        permission        = EXCLUDED.permission,
                        updated_at        = NOW()
                    RETURNING {_CUSTOM_COLUMNS}
                    """,
                    command.channel_id,
                    command.name,
                    command.response_template,
                    command.created_by.user_id,
                    command.created_by.username,
                    command.cooldown_seconds,
                    command.permission.value,
                )
                return _custom_from_row(row)

        return await _run("save_custom_command", _query, max_attempts=2)

    async def delete_custom_command(self, channel_id: str, name: str) -> bool:
        async def _query() -> bool:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM custom_commands WHERE channel_id = $1 AND name = $2",
                    channel_id,
                    name,
                )
                return result == "DELETE 1"

        return await _run("delete_custom_command", _query, max_attempts=2)
