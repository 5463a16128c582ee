"""
Tests du limiteur de cooldowns (horloge simulée)
"""
from botcore.rate_limiter import CooldownTracker, command_scope, user_scope


class TestCheckAndConsume:
    def test_first_call_passes_then_blocks(self, limiter, clock):
        assert limiter.check_and_consume("s", 10).ok
        blocked = limiter.check_and_consume("s", 10)
        assert not blocked.ok
        assert blocked.scope == "s"
        assert blocked.remaining == 10

    def test_window_expires(self, limiter, clock):
        limiter.check_and_consume("s", 10)
        clock.advance(9.5)
        assert not limiter.check_and_consume("s", 10).ok
        clock.advance(0.5)
        assert limiter.check_and_consume("s", 10).ok

    def test_zero_cooldown_never_blocks(self, limiter):
        for _ in range(5):
            assert limiter.check_and_consume("s", 0).ok
        assert len(limiter) == 0

    def test_remaining_seconds_rounds_up(self, limiter, clock):
        limiter.check_and_consume("s", 5)
        clock.advance(4.2)
        result = limiter.check_and_consume("s", 5)
        assert result.remaining_seconds == 1

    def test_rejected_call_does_not_extend_window(self, limiter, clock):
        limiter.check_and_consume("s", 10)
        clock.advance(5)
        limiter.check_and_consume("s", 10)
        clock.advance(5)
        assert limiter.check_and_consume("s", 10).ok


class TestMultipleScopes:
    def test_all_or_nothing(self, limiter, clock):
        limiter.check_and_consume("b", 30)
        result = limiter.check_and_consume_many([("a", 10), ("b", 30)])
        assert not result.ok
        assert result.scope == "b"
        # "a" was not consumed because "b" blocked
        assert limiter.remaining("a") == 0.0

    def test_both_recorded_on_success(self, limiter):
        assert limiter.check_and_consume_many([("a", 10), ("b", 30)]).ok
        assert limiter.remaining("a") == 10
        assert limiter.remaining("b") == 30


class TestHousekeeping:
    def test_sweep_drops_expired(self, limiter, clock):
        limiter.check_and_consume("short", 1)
        limiter.check_and_consume("long", 100)
        clock.advance(2)
        assert limiter.sweep() == 1
        assert len(limiter) == 1

    def test_reset(self, limiter):
        limiter.check_and_consume("s", 10)
        limiter.reset("s")
        assert limiter.check_and_consume("s", 10).ok

    def test_default_clock(self):
        tracker = CooldownTracker()
        assert tracker.check_and_consume("s", 60).ok
        assert not tracker.check_and_consume("s", 60).ok


def test_scope_keys():
    assert user_scope("c", "u") == "c:user:u"
    assert command_scope("c", "ping", "u") == "c:cmd:ping:user:u"
