"""Command dispatcher: parse -> resolve -> authorize -> cooldown -> execute.

Every inbound chat message goes through :meth:`Dispatcher.dispatch`,
which returns a :class:`DispatchResult` holding zero or one reply for the
connector to send. Nothing raised by a handler escapes ``dispatch``.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from botcore.errors import ErrorKind, PersistenceUnavailable, UsageError
from botcore.gateway import PersistenceGateway
from botcore.models.command import Permission, apply_prefix
from botcore.models.invocation import ChatEvent, Invocation, Reply, UserRef
from botcore.parser import extract_quoted, parse
from botcore.permissions import authorize, denial_message
from botcore.rate_limiter import CooldownTracker, command_scope, user_scope
from botcore.registry import CommandRegistry, Resolution, ResolutionKind
from botcore.templates import render

if TYPE_CHECKING:
    from botcore.activity import ActivityTracker
    from botcore.config import DispatchSettings

LOGGER = logging.getLogger("Dispatcher")

GENERIC_ERROR_REPLY = "Une erreur est survenue lors de l'exécution de cette commande."

_MENTION_PATTERN = re.compile(r"<@!?(\d+)>")


class DispatchState(str, Enum):
    RECEIVED = "received"
    PARSED = "parsed"
    AUTH_CHECKED = "auth_checked"
    COOLDOWN_CHECKED = "cooldown_checked"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class DispatchPolicy:
    """Per-deployment dispatch options."""

    prefix: str = "!"
    global_user_cooldown_seconds: int = 0
    default_command_cooldown_seconds: int = 5
    mods_exempt_from_cooldown: bool = True
    verbose_cooldown_reply: bool = False
    handler_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: DispatchSettings) -> DispatchPolicy:
        return cls(
            prefix=settings.prefix,
            global_user_cooldown_seconds=settings.global_user_cooldown_seconds,
            default_command_cooldown_seconds=settings.default_command_cooldown_seconds,
            mods_exempt_from_cooldown=settings.mods_exempt_from_cooldown,
            verbose_cooldown_reply=settings.verbose_cooldown_reply,
            handler_timeout_seconds=settings.handler_timeout_seconds,
        )


@dataclass(frozen=True)
class DispatchResult:
    state: DispatchState
    reply: Reply | None = None
    error_kind: ErrorKind | None = None
    invocation: Invocation | None = None
    command_name: str | None = None


@dataclass
class CommandContext:
    """What a command handler gets to work with."""

    invocation: Invocation
    gateway: PersistenceGateway
    registry: CommandRegistry
    policy: DispatchPolicy

    @property
    def channel_id(self) -> str:
        return self.invocation.channel_id

    @property
    def author(self) -> UserRef:
        return self.invocation.author

    @property
    def args(self) -> tuple[str, ...]:
        return self.invocation.args

    def usage_error(self, syntax: str) -> UsageError:
        """``UsageError`` for *syntax* (see :attr:`Command.usage`) with this channel's prefix."""
        return UsageError(f"Usage : {apply_prefix(syntax, self.policy.prefix)}")

    def quoted_args(self) -> list[str]:
        """``"..."`` segments of the argument text (polls and the like)."""
        return extract_quoted(self.invocation.arg_text)

    async def resolve_target(self, token: str) -> UserRef | None:
        """Resolve ``@name`` or a ``<@id>`` mention to a known user."""
        mentions = self.invocation.mentions
        match = _MENTION_PATTERN.fullmatch(token)
        if match:
            user_id = match.group(1)
            for ref in mentions:
                if ref.user_id == user_id:
                    return ref
            return UserRef(user_id, user_id)

        name = token.lstrip("@").strip()
        if not name:
            return None
        for ref in mentions:
            if ref.username.lower() == name.lower():
                return ref
        if name.lower() == self.invocation.username.lower():
            return self.author

        user_id = await self.gateway.find_user_id(self.channel_id, name)
        return UserRef(user_id, name) if user_id else None


def _to_reply(result: Any) -> Reply | None:
    if result is None:
        return None
    if isinstance(result, Reply):
        return result if (result.text or result.embed) else None
    text = str(result)
    return Reply(text=text) if text else None


def _consume_late_result(task: asyncio.Task) -> None:
    """Retrieve the outcome of a timed-out handler so it is not reported as unhandled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.debug(f"Timed-out handler finished with {type(exc).__name__}: {exc}")


class Dispatcher:
    def __init__(
        self,
        registry: CommandRegistry,
        limiter: CooldownTracker,
        gateway: PersistenceGateway,
        policy: DispatchPolicy | None = None,
        *,
        activity: ActivityTracker | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry
        self.limiter = limiter
        self.gateway = gateway
        self.policy = policy or DispatchPolicy()
        self.activity = activity
        self._rng = rng

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def dispatch(self, event: ChatEvent) -> DispatchResult:
        """Run one chat message through the pipeline."""
        parsed = parse(event.raw_message, self.policy.prefix)
        if parsed is None:
            await self._record_activity(event)
            return DispatchResult(DispatchState.COMPLETED, error_kind=ErrorKind.PARSE_SKIP)

        invocation = Invocation(
            channel_id=event.channel_id,
            user_id=event.user_id,
            username=event.username,
            is_moderator=event.is_moderator,
            is_owner=event.is_owner,
            command_name=parsed.command_name,
            args=parsed.args,
            raw_message=event.raw_message,
            arg_text=parsed.arg_text,
            channel_name=event.channel_name,
            platform=event.platform,
            mentions=event.mentions,
        )

        # PARSED -> AUTH_CHECKED
        try:
            resolution = await self.registry.resolve(invocation.channel_id, invocation.command_name)
        except PersistenceUnavailable as e:
            # Can't tell whether this is a command at all: stay silent
            LOGGER.error(
                f"[PERSISTENCE] Resolving !{invocation.command_name} in "
                f"{invocation.channel_id} failed: {e}"
            )
            return DispatchResult(
                DispatchState.FAILED,
                error_kind=ErrorKind.PERSISTENCE_UNAVAILABLE,
                invocation=invocation,
            )

        if not resolution.found:
            return DispatchResult(
                DispatchState.COMPLETED,
                error_kind=ErrorKind.UNKNOWN_COMMAND,
                invocation=invocation,
            )

        command_name = resolution.name or invocation.command_name
        required = self._required_permission(resolution)
        if not authorize(invocation, required):
            LOGGER.info(
                f"[DENIED] {invocation.username} -> !{command_name} "
                f"in {invocation.channel_id} (requires {required.value})"
            )
            return DispatchResult(
                DispatchState.REJECTED,
                reply=Reply(text=f"@{invocation.username} {denial_message(required)}"),
                error_kind=ErrorKind.PERMISSION_DENIED,
                invocation=invocation,
                command_name=command_name,
            )

        # AUTH_CHECKED -> COOLDOWN_CHECKED
        rejected = self._check_cooldown(invocation, resolution, command_name)
        if rejected is not None:
            return rejected

        # COOLDOWN_CHECKED -> EXECUTING
        return await self._execute(invocation, resolution, command_name)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _required_permission(resolution: Resolution) -> Permission:
        if resolution.command is not None:
            return resolution.command.permission
        if resolution.custom is not None:
            return resolution.custom.permission
        return Permission.EVERYONE

    def _command_cooldown(self, resolution: Resolution) -> int:
        if resolution.command is not None:
            own = resolution.command.cooldown_seconds
        elif resolution.custom is not None:
            own = resolution.custom.cooldown_seconds
        else:
            own = None
        return self.policy.default_command_cooldown_seconds if own is None else own

    def _cooldown_windows(
        self, invocation: Invocation, resolution: Resolution, command_name: str
    ) -> list[tuple[str, float]]:
        if self.policy.mods_exempt_from_cooldown and invocation.is_privileged:
            return []
        return [
            (
                user_scope(invocation.channel_id, invocation.user_id),
                self.policy.global_user_cooldown_seconds,
            ),
            (
                command_scope(invocation.channel_id, command_name, invocation.user_id),
                self._command_cooldown(resolution),
            ),
        ]

    def _check_cooldown(
        self, invocation: Invocation, resolution: Resolution, command_name: str
    ) -> DispatchResult | None:
        windows = self._cooldown_windows(invocation, resolution, command_name)
        if not windows:
            return None

        result = self.limiter.check_and_consume_many(windows)
        if result.ok:
            return None

        LOGGER.debug(
            f"[COOLDOWN] {invocation.username} -> !{command_name}: "
            f"{result.remaining:.1f}s left on {result.scope}"
        )
        reply = None
        if self.policy.verbose_cooldown_reply:
            reply = Reply(
                text=f"@{invocation.username}, {self.policy.prefix}{command_name} est en recharge "
                f"({result.remaining_seconds}s)."
            )
        return DispatchResult(
            DispatchState.REJECTED,
            reply=reply,
            error_kind=ErrorKind.ON_COOLDOWN,
            invocation=invocation,
            command_name=command_name,
        )

    async def _execute(
        self, invocation: Invocation, resolution: Resolution, command_name: str
    ) -> DispatchResult:
        context = f"!{command_name} by {invocation.username} ({invocation.user_id}) in {invocation.channel_id}"

        def _failed(kind: ErrorKind) -> DispatchResult:
            return DispatchResult(
                DispatchState.FAILED,
                reply=Reply(text=GENERIC_ERROR_REPLY),
                error_kind=kind,
                invocation=invocation,
                command_name=command_name,
            )

        try:
            if resolution.kind is ResolutionKind.CUSTOM and resolution.custom is not None:
                raw_result: Any = render(
                    resolution.custom.response_template, invocation, rng=self._rng
                )
            elif resolution.command is not None:
                ctx = CommandContext(invocation, self.gateway, self.registry, self.policy)
                raw_result = await self._run_with_timeout(resolution.command.handler(ctx))
            else:
                raw_result = None
        except asyncio.TimeoutError:
            LOGGER.error(
                f"[TIMEOUT] {context} exceeded {self.policy.handler_timeout_seconds}s"
            )
            return _failed(ErrorKind.TIMEOUT)
        except UsageError as e:
            # A rejected usage does not count as a use
            for scope, cooldown in self._cooldown_windows(invocation, resolution, command_name):
                if cooldown > 0:
                    self.limiter.reset(scope)
            return DispatchResult(
                DispatchState.COMPLETED,
                reply=_to_reply(str(e)),
                error_kind=ErrorKind.USAGE,
                invocation=invocation,
                command_name=command_name,
            )
        except PersistenceUnavailable as e:
            LOGGER.error(f"[PERSISTENCE] {context} failed: {e}")
            return _failed(ErrorKind.PERSISTENCE_UNAVAILABLE)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            LOGGER.exception(f"[HANDLER] {context} raised {type(e).__name__}: {e}")
            return _failed(ErrorKind.HANDLER_ERROR)

        LOGGER.info(f"[COMMAND] {context} ({resolution.kind.value})")
        return DispatchResult(
            DispatchState.COMPLETED,
            reply=_to_reply(raw_result),
            invocation=invocation,
            command_name=command_name,
        )

    async def _run_with_timeout(self, coro: Any) -> Any:
        """Await *coro* for at most the handler timeout.

        On timeout the task is cancelled and left behind; we never wait for
        it to wind down.
        """
        task = asyncio.ensure_future(coro)
        try:
            done, _ = await asyncio.wait({task}, timeout=self.policy.handler_timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task not in done:
            task.cancel()
            task.add_done_callback(_consume_late_result)
            raise asyncio.TimeoutError
        return task.result()

    async def _record_activity(self, event: ChatEvent) -> None:
        if self.activity is None:
            return
        try:
            await self.activity.record(event)
        except Exception as e:
            LOGGER.warning(f"Activity tracking failed for {event.username}: {type(e).__name__}: {e}")
