"""JSON-file persistence backend.

Keeps everything in memory (see :class:`MemoryGateway`) and rewrites the
whole file after each mutation. The write goes to a temporary file that
is then renamed over the target, so a crash never leaves half a file.
A failed write rolls the in-memory state back to the last saved one.
Suited to small single-process bots.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from botcore.backends.memory import MemoryGateway
from botcore.errors import PersistenceUnavailable
from botcore.models.command import CustomCommand, Permission
from botcore.models.invocation import UserRef
from botcore.models.points import PointsEntry

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class JsonFileGateway(MemoryGateway):
    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)

    async def load(self) -> None:
        """Read the file if it exists. Missing file = empty store."""
        if not self.path.exists():
            logger.info(f"No data file at {self.path}, starting empty")
            return
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            raise PersistenceUnavailable("load", e) from e

        async with self._lock:
            self._ledger.clear()
            self._custom.clear()
            for row in data.get("points", []):
                entry = PointsEntry(**row)
                self._ledger[(entry.channel_id, entry.user_id)] = entry
            for row in data.get("custom_commands", []):
                cmd = CustomCommand(
                    channel_id=row["channel_id"],
                    name=row["name"],
                    response_template=row["response_template"],
                    created_by=UserRef(**row["created_by"]),
                    cooldown_seconds=row.get("cooldown_seconds"),
                    permission=Permission(row.get("permission", "everyone")),
                    created_at=_dt(row.get("created_at")),
                    updated_at=_dt(row.get("updated_at")),
                )
                self._custom.setdefault(cmd.channel_id, {})[cmd.name] = cmd
        logger.info(
            f"Loaded {len(self._ledger)} ledger entries and "
            f"{sum(len(c) for c in self._custom.values())} custom commands from {self.path}"
        )

    def _snapshot(self) -> dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "points": [
                {
                    "channel_id": e.channel_id,
                    "user_id": e.user_id,
                    "username": e.username,
                    "balance": e.balance,
                    "xp": e.xp,
                }
                for e in self._ledger.values()
            ],
            "custom_commands": [
                {
                    "channel_id": c.channel_id,
                    "name": c.name,
                    "response_template": c.response_template,
                    "created_by": {
                        "user_id": c.created_by.user_id,
                        "username": c.created_by.username,
                    },
                    "cooldown_seconds": c.cooldown_seconds,
                    "permission": c.permission.value,
                    "created_at": c.created_at.isoformat() if c.created_at else None,
                    "updated_at": c.updated_at.isoformat() if c.updated_at else None,
                }
                for channel in self._custom.values()
                for c in channel.values()
            ],
        }

    def _checkpoint(self) -> tuple[dict, dict]:
        return (
            {key: replace(entry) for key, entry in self._ledger.items()},
            {channel: dict(cmds) for channel, cmds in self._custom.items()},
        )

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, self.path)

    async def _after_write(self) -> None:
        payload = json.dumps(self._snapshot(), ensure_ascii=False, indent=2)
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as e:
            logger.error(f"[PERSISTENCE] Failed to write {self.path}: {e}")
            raise PersistenceUnavailable("write", e) from e
