"""
Challenge Cache

Pending WebAuthn challenges keyed by ceremony context. A challenge is
consumed on the first verification attempt whatever the outcome, and a new
challenge for the same context replaces the old one.
"""

from webauthn.helpers import base64url_to_bytes, bytes_to_base64url

from portfolio_api.core.cache import KeyValueStore
from portfolio_api.core.errors import ChallengeExpiredError

CHALLENGE_PREFIX = "webauthn_challenge:"
CHALLENGE_TTL_SECONDS = 300  # 5 minutes

# Single admin principal, so both contexts are fixed keys
REGISTRATION_CONTEXT = "registration:admin"
AUTHENTICATION_CONTEXT = "authentication:login"


class ChallengeCache:
    """Store and consume ceremony challenges."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int = CHALLENGE_TTL_SECONDS):
        self.store = store
        self.ttl_seconds = ttl_seconds

    async def put(self, context: str, challenge: bytes) -> None:
        await self.store.set(
            f"{CHALLENGE_PREFIX}{context}", bytes_to_base64url(challenge), self.ttl_seconds
        )

    async def consume(self, context: str) -> bytes:
        """
        Take the pending challenge for a context.

        Raises:
            ChallengeExpiredError: If no challenge is pending
        """
        encoded = await self.store.pop(f"{CHALLENGE_PREFIX}{context}")
        if not encoded:
            raise ChallengeExpiredError()
        return base64url_to_bytes(encoded)
