"""Data models for the points ledger and XP levels."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class TransferResult(str, Enum):
    OK = "ok"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SAME_USER = "same_user"
    INVALID_AMOUNT = "invalid_amount"


@dataclass
class PointsEntry:
    """Points balance of one user in one channel (never negative)."""

    channel_id: str
    user_id: str
    username: str
    balance: int = 0
    xp: int = 0


@dataclass(frozen=True)
class LeaderboardEntry:
    username: str
    balance: int


def level_for_xp(xp: int) -> int:
    """Level curve: ``floor(0.1 * sqrt(xp))`` in integer arithmetic."""
    if xp <= 0:
        return 0
    return math.isqrt(xp) // 10


def xp_for_level(level: int) -> int:
    """Minimum XP needed to reach *level*."""
    return (level * 10) ** 2


@dataclass(frozen=True)
class XpResult:
    xp: int
    level: int
    leveled_up: bool
