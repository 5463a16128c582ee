"""Versioned SQL migrations with a tracking table."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Both connectors may start against the same database at once
_ADVISORY_LOCK_ID = 0x63686174  # "chat"


class MigrationRunner:
    """Apply plain SQL files from ``versions/`` exactly once.

    Files are named ``NNN_description.sql``; the stem is the version and
    applied versions are recorded in ``schema_migrations``. The whole run
    holds a PostgreSQL advisory lock so concurrent start-ups don't race.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, versions_dir: Path | None = None) -> None:
        self.pool = pool
        self.versions_dir = versions_dir or VERSIONS_DIR

    def discover(self) -> list[Path]:
        return sorted(self.versions_dir.glob("*.sql"))

    async def run_pending(self) -> list[str]:
        """Apply every migration not yet recorded. Returns the new versions."""
        sql_files = self.discover()
        if not sql_files:
            logger.info("No migration files found in %s", self.versions_dir)
            return []

        async with self.pool.acquire() as conn:
            await conn.execute("SELECT pg_advisory_lock($1)", _ADVISORY_LOCK_ID)
            try:
                await conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                        version    TEXT PRIMARY KEY,
                        name       TEXT NOT NULL,
                        applied_at TIMESTAMPTZ DEFAULT NOW()
                    )
                    """
                )
                rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
                applied = {row["version"] for row in rows}

                newly_applied: list[str] = []
                for sql_path in sql_files:
                    version = sql_path.stem
                    if version in applied:
                        logger.debug("Migration %s already applied, skipping", version)
                        continue
                    await self._apply_one(conn, version, sql_path)
                    newly_applied.append(version)
            finally:
                await conn.execute("SELECT pg_advisory_unlock($1)", _ADVISORY_LOCK_ID)

        if newly_applied:
            logger.info(
                "Applied %d migration(s): %s", len(newly_applied), ", ".join(newly_applied)
            )
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _apply_one(self, conn: asyncpg.Connection, version: str, sql_path: Path) -> None:
        logger.info("Applying migration: %s", version)
        sql = sql_path.read_text(encoding="utf-8")
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                version,
                sql_path.name,
            )
