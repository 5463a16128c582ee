"""Wires settings, storage, registry, limiter and dispatcher together.

Both connectors build one :class:`Engine` at start-up and close it on
shutdown; they never touch the backends directly.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import asyncpg
import httpx

from botcore.activity import ActivityTracker
from botcore.backends import JsonFileGateway, MemoryGateway, PostgresGateway
from botcore.commands import close_components, register_builtin_commands
from botcore.config import DispatchSettings
from botcore.database import PoolOptions, open_pool, ping
from botcore.dispatcher import DispatchPolicy, Dispatcher
from botcore.gateway import PersistenceGateway
from botcore.migrations import MigrationRunner
from botcore.pg_listener import CUSTOM_COMMAND_CHANNEL, pg_listen
from botcore.rate_limiter import CooldownTracker
from botcore.registry import CommandRegistry

LOGGER = logging.getLogger("Engine")


@dataclass
class Engine:
    settings: DispatchSettings
    gateway: PersistenceGateway
    registry: CommandRegistry
    limiter: CooldownTracker
    dispatcher: Dispatcher
    http_client: httpx.AsyncClient
    components: list = field(default_factory=list)
    pool: asyncpg.Pool | None = None
    _tasks: list[asyncio.Task] = field(default_factory=list)

    @property
    def backend_name(self) -> str:
        return type(self.gateway).__name__

    def start_background_tasks(self) -> None:
        """Start the cooldown sweeper and, with PostgreSQL, the NOTIFY listener."""
        if self._tasks:
            return
        self._tasks.append(
            asyncio.create_task(
                self.limiter.run_sweeper(self.settings.cooldown_sweep_interval),
                name="cooldown-sweeper",
            )
        )
        if self.pool is not None:
            self._tasks.append(
                asyncio.create_task(
                    pg_listen(self.pool, CUSTOM_COMMAND_CHANNEL, self._on_custom_change),
                    name="custom-command-listener",
                )
            )

    def _on_custom_change(self, channel_id: str) -> None:
        LOGGER.debug(f"[NOTIFY] Custom commands changed for {channel_id}")
        if channel_id:
            self.registry.invalidate(channel_id)
        else:
            self.registry.invalidate_all()

    async def check_health(self) -> dict[str, Any]:
        db_ok = await ping(self.pool) if self.pool is not None else True
        return {
            "backend": self.backend_name,
            "database": db_ok,
            "commands": len(self.registry.static_commands),
            "active_cooldowns": len(self.limiter),
        }

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        await close_components(self.components)
        await self.http_client.aclose()
        if self.pool is not None:
            await self.pool.close()
        LOGGER.info("Engine closed")


async def _open_gateway(
    settings: DispatchSettings,
) -> tuple[PersistenceGateway, asyncpg.Pool | None]:
    if settings.database_url:
        pool = await open_pool(settings.database_url, PoolOptions.from_settings(settings))
        try:
            await MigrationRunner(pool).run_pending()
        except BaseException:
            await pool.close()
            raise
        return PostgresGateway(pool), pool

    if settings.points_file:
        gateway = JsonFileGateway(settings.points_file)
        await gateway.load()
        return gateway, None

    LOGGER.warning("No BOT_DATABASE_URL or BOT_POINTS_FILE set, data will not survive a restart")
    return MemoryGateway(), None


async def build_engine(
    settings: DispatchSettings,
    *,
    service: str = "twitch",
    gateway: PersistenceGateway | None = None,
    start_tasks: bool = True,
) -> Engine:
    """Assemble an :class:`Engine` from settings.

    Storage is PostgreSQL when ``database_url`` is set, else the JSON file
    at ``points_file``, else memory. Passing *gateway* skips that choice.
    """
    pool: asyncpg.Pool | None = None
    if gateway is None:
        gateway, pool = await _open_gateway(settings)

    registry = CommandRegistry(
        gateway,
        prefix=settings.prefix,
        cache_ttl=settings.custom_command_cache_ttl,
    )
    http_client = httpx.AsyncClient(timeout=8.0)
    components = register_builtin_commands(registry, http_client=http_client)

    limiter = CooldownTracker()
    activity = None
    if settings.xp_per_message > 0:
        activity = ActivityTracker(
            gateway,
            limiter,
            xp_per_message=settings.xp_per_message,
            cooldown_seconds=settings.xp_cooldown_seconds,
        )

    dispatcher = Dispatcher(
        registry,
        limiter,
        gateway,
        DispatchPolicy.from_settings(settings),
        activity=activity,
    )
    engine = Engine(
        settings=settings,
        gateway=gateway,
        registry=registry,
        limiter=limiter,
        dispatcher=dispatcher,
        http_client=http_client,
        components=components,
        pool=pool,
    )
    if start_tasks:
        engine.start_background_tasks()

    LOGGER.info(
        f"Engine ready for {service}: {len(registry.static_commands)} built-in commands, "
        f"backend={engine.backend_name}, prefix={settings.prefix!r}"
    )
    return engine
