"""Tests for the fixed-window rate limiter and the lockout tracker."""

import pytest

from portfolio_api.core.errors import LockedError, RateLimitedError
from portfolio_api.services.rate_limit import LockoutTracker, RateLimiter

CLIENT = "203.0.113.7"


@pytest.mark.unit
class TestRateLimiter:
    """Tests for RateLimiter."""

    async def test_allows_up_to_limit(self, store, clock):
        limiter = RateLimiter(store, "test", limit=5, window_seconds=300, clock=clock)

        for _ in range(5):
            await limiter.hit(CLIENT)

        with pytest.raises(RateLimitedError) as exc_info:
            await limiter.hit(CLIENT)
        assert exc_info.value.retry_after == 300

    async def test_window_resets_after_it_elapses(self, store, clock):
        limiter = RateLimiter(store, "test", limit=2, window_seconds=300, clock=clock)
        await limiter.hit(CLIENT)
        await limiter.hit(CLIENT)

        clock.advance(300)
        with pytest.raises(RateLimitedError):
            await limiter.hit(CLIENT)

        clock.advance(1)
        await limiter.hit(CLIENT)

    async def test_clients_are_independent(self, store, clock):
        limiter = RateLimiter(store, "test", limit=1, window_seconds=300, clock=clock)
        await limiter.hit(CLIENT)

        await limiter.hit("198.51.100.1")

    async def test_scopes_are_independent(self, store, clock):
        pin = RateLimiter(store, "pin", limit=1, window_seconds=300, clock=clock)
        ceremony = RateLimiter(store, "ceremony", limit=1, window_seconds=300, clock=clock)
        await pin.hit(CLIENT)

        await ceremony.hit(CLIENT)

    async def test_reset_clears_window(self, store, clock):
        limiter = RateLimiter(store, "test", limit=1, window_seconds=300, clock=clock)
        await limiter.hit(CLIENT)

        await limiter.reset(CLIENT)

        await limiter.hit(CLIENT)


@pytest.mark.unit
class TestLockoutTracker:
    """Tests for LockoutTracker."""

    @pytest.fixture
    def lockout(self, store, clock):
        return LockoutTracker(store, threshold=3, lockout_seconds=30, clock=clock)

    async def test_third_failure_locks(self, lockout):
        await lockout.record_failure(CLIENT)
        await lockout.record_failure(CLIENT)

        with pytest.raises(LockedError) as exc_info:
            await lockout.record_failure(CLIENT)
        assert exc_info.value.retry_after == 30

    async def test_locked_for_full_countdown(self, lockout, clock):
        for _ in range(2):
            await lockout.record_failure(CLIENT)
        with pytest.raises(LockedError):
            await lockout.record_failure(CLIENT)

        clock.advance(29)
        with pytest.raises(LockedError) as exc_info:
            await lockout.ensure_unlocked(CLIENT)
        assert exc_info.value.retry_after == 1

        clock.advance(1)
        await lockout.ensure_unlocked(CLIENT)

    async def test_counter_cleared_after_lockout(self, lockout, clock):
        for _ in range(2):
            await lockout.record_failure(CLIENT)
        with pytest.raises(LockedError):
            await lockout.record_failure(CLIENT)
        clock.advance(30)

        await lockout.ensure_unlocked(CLIENT)

        assert (await lockout.get_state(CLIENT)).failures == 0

    async def test_reset_clears_failures(self, lockout):
        await lockout.record_failure(CLIENT)
        await lockout.record_failure(CLIENT)

        await lockout.reset(CLIENT)
        await lockout.record_failure(CLIENT)

        assert (await lockout.get_state(CLIENT)).failures == 1

    async def test_failures_expire_with_window(self, store, clock):
        lockout = LockoutTracker(
            store, threshold=3, lockout_seconds=30, window_seconds=300, clock=clock
        )
        await lockout.record_failure(CLIENT)
        await lockout.record_failure(CLIENT)

        clock.advance(300)
        assert (await lockout.get_state(CLIENT)).failures == 2

        clock.advance(1)
        assert (await lockout.get_state(CLIENT)).failures == 0

    async def test_window_does_not_slide(self, lockout, clock):
        await lockout.record_failure(CLIENT)  # t=0 opens the window
        clock.advance(200)
        await lockout.record_failure(CLIENT)
        clock.advance(200)

        await lockout.record_failure(CLIENT)  # t=400 starts a new window

        state = await lockout.get_state(CLIENT)
        assert state.failures == 1
        assert state.locked_until is None
        assert state.window_start == clock()

    async def test_third_failure_inside_window_locks(self, lockout, clock):
        await lockout.record_failure(CLIENT)
        clock.advance(200)
        await lockout.record_failure(CLIENT)
        clock.advance(99)

        with pytest.raises(LockedError):
            await lockout.record_failure(CLIENT)
