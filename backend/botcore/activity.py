"""Chat activity XP: plain (non-command) messages earn XP toward levels."""

from __future__ import annotations

import logging

from botcore.errors import PersistenceUnavailable
from botcore.gateway import PersistenceGateway
from botcore.models.invocation import ChatEvent
from botcore.models.points import XpResult
from botcore.rate_limiter import CooldownTracker

LOGGER = logging.getLogger("ActivityTracker")


class ActivityTracker:
    """Award ``xp_per_message`` at most once per ``cooldown_seconds`` per user.

    Never replies in chat; level-ups are only logged.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        limiter: CooldownTracker,
        *,
        xp_per_message: int,
        cooldown_seconds: int = 60,
    ) -> None:
        self.gateway = gateway
        self.limiter = limiter
        self.xp_per_message = xp_per_message
        self.cooldown_seconds = cooldown_seconds

    async def record(self, event: ChatEvent) -> XpResult | None:
        if self.xp_per_message <= 0 or not event.raw_message.strip():
            return None

        scope = f"{event.channel_id}:xp:{event.user_id}"
        if not self.limiter.check_and_consume(scope, self.cooldown_seconds).ok:
            return None

        try:
            result = await self.gateway.add_xp(
                event.channel_id, event.user_id, self.xp_per_message, username=event.username
            )
        except PersistenceUnavailable as e:
            LOGGER.error(f"[PERSISTENCE] XP award for {event.username} failed: {e}")
            return None

        if result.leveled_up:
            LOGGER.info(
                f"{event.username} reached level {result.level} in {event.channel_id} "
                f"({result.xp} XP)"
            )
        return result
