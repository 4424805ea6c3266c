"""
Registration-Session Token Store

Opaque bearer tokens minted after a correct PIN. They authorize the passkey
registration ceremony and credential management, nothing else, and expire
after a fixed window.
"""

import logging
import time

from portfolio_api.core.cache import Clock, KeyValueStore
from portfolio_api.core.errors import UnauthorizedError
from portfolio_api.core.security import generate_token

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "registration_token:"


class RegistrationTokenStore:
    """Issue and validate registration-session tokens."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = 300,
        sweep_threshold: int = 100,
        clock: Clock = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.sweep_threshold = sweep_threshold
        self.clock = clock

    async def issue(self) -> str:
        """
        Mint a new token valid for ttl_seconds from now.

        Returns:
            The bearer token
        """
        token = generate_token()
        # Backend expiry trails the validity window; validate() is authoritative
        await self.store.set(f"{TOKEN_PREFIX}{token}", repr(self.clock()), self.ttl_seconds + 1)
        await self._maybe_sweep()
        return token

    async def validate(self, token: str | None) -> bool:
        """
        Check a token.

        Returns:
            True iff the token is known and no older than ttl_seconds.
            Expired tokens are deleted on the way out.
        """
        if not token:
            return False

        key = f"{TOKEN_PREFIX}{token}"
        issued_at = await self.store.get(key)
        if issued_at is None:
            return False

        if self.clock() - float(issued_at) > self.ttl_seconds:
            await self.store.delete(key)
            return False
        return True

    async def require(self, token: str | None) -> None:
        """Raise UnauthorizedError unless the token is valid."""
        if not await self.validate(token):
            raise UnauthorizedError()

    async def sweep(self) -> int:
        """
        Delete every expired token.

        Returns:
            Number of tokens removed
        """
        removed = 0
        now = self.clock()
        for key in await self.store.keys(TOKEN_PREFIX):
            issued_at = await self.store.get(key)
            if issued_at is None or now - float(issued_at) > self.ttl_seconds:
                await self.store.delete(key)
                removed += 1
        if removed:
            logger.debug(f"Swept {removed} expired registration tokens")
        return removed

    async def _maybe_sweep(self) -> None:
        if len(await self.store.keys(TOKEN_PREFIX)) > self.sweep_threshold:
            await self.sweep()
