"""
Rate Limiting and Lockout

RateLimiter is a fixed-window attempt counter: the window opens on the first
attempt and every attempt inside it counts, right or wrong.

LockoutTracker counts failures only. Reaching the threshold locks the client
out for a fixed countdown during which every attempt is refused, correct or
not. The counter is shared by every login step.
"""

import json
import logging
import math
import time
from dataclasses import dataclass

from portfolio_api.core.cache import Clock, KeyValueStore
from portfolio_api.core.errors import LockedError, RateLimitedError

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "rate_limit:"
LOCKOUT_PREFIX = "lockout:"


@dataclass
class LockoutState:
    failures: int = 0
    window_start: float | None = None
    locked_until: float | None = None


class RateLimiter:
    """Fixed-window attempt limiter keyed by client identity."""

    def __init__(
        self,
        store: KeyValueStore,
        scope: str,
        limit: int,
        window_seconds: int,
        clock: Clock = time.time,
    ):
        self.store = store
        self.scope = scope
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock

    def _key(self, identity: str) -> str:
        return f"{RATE_LIMIT_PREFIX}{self.scope}:{identity}"

    async def hit(self, identity: str) -> None:
        """
        Record an attempt.

        Raises:
            RateLimitedError: If the window already holds `limit` attempts
        """
        key = self._key(identity)
        now = self.clock()
        raw = await self.store.get(key)

        if raw is None:
            entry = {"count": 0, "reset_at": now + self.window_seconds}
        else:
            entry = json.loads(raw)
            if now > entry["reset_at"]:
                entry = {"count": 0, "reset_at": now + self.window_seconds}

        if entry["count"] >= self.limit:
            retry_after = math.ceil(entry["reset_at"] - now)
            logger.warning(
                f"Rate limit exceeded for {self.scope}",
                extra={"client": identity, "retry_after": retry_after},
            )
            raise RateLimitedError(retry_after)

        entry["count"] += 1
        await self.store.set(key, json.dumps(entry), entry["reset_at"] - now + 1)

    async def reset(self, identity: str) -> None:
        await self.store.delete(self._key(identity))


class LockoutTracker:
    """Shared failure counter for the PIN, one-time code and human check steps."""

    def __init__(
        self,
        store: KeyValueStore,
        threshold: int = 3,
        lockout_seconds: int = 30,
        window_seconds: int = 300,
        clock: Clock = time.time,
    ):
        self.store = store
        self.threshold = threshold
        self.lockout_seconds = lockout_seconds
        self.window_seconds = window_seconds
        self.clock = clock

    def _key(self, identity: str) -> str:
        return f"{LOCKOUT_PREFIX}{identity}"

    async def get_state(self, identity: str) -> LockoutState:
        """
        Current failure state.

        The failure window is fixed: it opens on the first failure and the
        count starts over once more than window_seconds have passed.
        """
        raw = await self.store.get(self._key(identity))
        if raw is None:
            return LockoutState()

        state = LockoutState(**json.loads(raw))
        if (
            state.locked_until is None
            and state.window_start is not None
            and self.clock() - state.window_start > self.window_seconds
        ):
            return LockoutState()
        return state

    async def _save(self, identity: str, state: LockoutState) -> None:
        now = self.clock()
        ttl = (state.window_start or now) + self.window_seconds - now + 1
        if state.locked_until is not None:
            ttl = max(ttl, state.locked_until - now)
        await self.store.set(self._key(identity), json.dumps(state.__dict__), ttl)

    async def ensure_unlocked(self, identity: str) -> None:
        """
        Refuse the attempt if the client is inside a lockout countdown.

        An elapsed lockout clears the failure count.

        Raises:
            LockedError: With the remaining countdown in whole seconds
        """
        state = await self.get_state(identity)
        if state.locked_until is None:
            return

        remaining = state.locked_until - self.clock()
        if remaining > 0:
            raise LockedError(math.ceil(remaining))

        await self.reset(identity)

    async def record_failure(self, identity: str) -> None:
        """
        Count a failed attempt.

        Raises:
            LockedError: When this failure reaches the threshold
        """
        state = await self.get_state(identity)
        if state.failures == 0:
            state.window_start = self.clock()
        state.failures += 1

        if state.failures >= self.threshold:
            state.locked_until = self.clock() + self.lockout_seconds
            await self._save(identity, state)
            logger.warning(
                f"Admin login locked after {state.failures} failed attempts",
                extra={"client": identity, "lockout_seconds": self.lockout_seconds},
            )
            raise LockedError(self.lockout_seconds)

        await self._save(identity, state)

    async def reset(self, identity: str) -> None:
        await self.store.delete(self._key(identity))
