"""
Shared fixtures for the dispatch core tests.
Everything runs against the in-memory backend and a fake clock.
"""
import random

import pytest

from botcore.backends import MemoryGateway
from botcore.commands import register_builtin_commands
from botcore.dispatcher import DispatchPolicy, Dispatcher
from botcore.models import ChatEvent
from botcore.rate_limiter import CooldownTracker
from botcore.registry import CommandRegistry

CHANNEL = "chan-1"


class FakeClock:
    """Monotonic clock the tests move by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_event(text, *, user_id="u-alice", username="alice", mod=False, owner=False,
               channel_id=CHANNEL, mentions=()):
    return ChatEvent(
        channel_id=channel_id,
        user_id=user_id,
        username=username,
        raw_message=text,
        is_moderator=mod,
        is_owner=owner,
        channel_name="testchan",
        platform="test",
        mentions=tuple(mentions),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return MemoryGateway()


@pytest.fixture
def limiter(clock):
    return CooldownTracker(clock=clock)


@pytest.fixture
def registry(gateway):
    return CommandRegistry(gateway, prefix="!")


@pytest.fixture
def policy():
    return DispatchPolicy(handler_timeout_seconds=1.0)


@pytest.fixture
def dispatcher(registry, limiter, gateway, policy):
    register_builtin_commands(registry)
    return Dispatcher(registry, limiter, gateway, policy, rng=random.Random(42))
