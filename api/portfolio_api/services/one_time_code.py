"""
One-Time Code Service

Six-digit codes emailed to the admin as the alternative possession factor.
Each code lives for five minutes, is keyed by recipient and is deleted by
the first successful verification. Expired and mismatched codes fail the
same way.
"""

import logging
import secrets

from portfolio_api.core.cache import KeyValueStore
from portfolio_api.core.errors import DeliveryFailedError
from portfolio_api.core.security import constant_time_equals
from portfolio_api.services.email_service import EmailSender

logger = logging.getLogger(__name__)

CODE_PREFIX = "one_time_code:"
DEFAULT_RECIPIENT = "admin"


def normalize_recipient(recipient: str | None) -> str:
    return (recipient or "").strip().lower() or DEFAULT_RECIPIENT


def generate_code() -> str:
    """Random six-digit code without a leading zero."""
    return str(secrets.randbelow(900000) + 100000)


class OneTimeCodeService:
    def __init__(self, store: KeyValueStore, sender: EmailSender, ttl_seconds: int = 300):
        self.store = store
        self.sender = sender
        self.ttl_seconds = ttl_seconds

    async def send(self, recipient: str) -> None:
        """
        Generate, store and email a code, replacing any pending one.

        Raises:
            DeliveryFailedError: If the email could not be sent; no code is
                left pending in that case
        """
        key = f"{CODE_PREFIX}{normalize_recipient(recipient)}"
        code = generate_code()
        await self.store.set(key, code, self.ttl_seconds)

        minutes = self.ttl_seconds // 60
        try:
            await self.sender.send(
                recipient,
                "Your admin login code",
                f"Your one-time login code is {code}. It expires in {minutes} minutes.",
                otp_code=code,
            )
        except DeliveryFailedError:
            await self.store.delete(key)
            raise

        logger.info("One-time code sent", extra={"recipient": recipient})

    async def verify(self, recipient: str, code: str) -> bool:
        """
        Check a submitted code.

        Returns:
            True on a match, which consumes the code. False for a wrong,
            expired or never-issued code.
        """
        key = f"{CODE_PREFIX}{normalize_recipient(recipient)}"
        stored = await self.store.get(key)
        if stored is None or not constant_time_equals(stored, (code or "").strip()):
            return False

        await self.store.delete(key)
        return True
