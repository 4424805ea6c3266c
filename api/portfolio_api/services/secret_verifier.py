"""
PIN comparison.

The comparison value is read fresh on every check: the bcrypt hash in the
admin record, then PORTFOLIO_ADMIN_PIN_HASH, then the plain PORTFOLIO_ADMIN_PIN
(constant-time compare) for deployments that never ran the startup bootstrap.
"""

import logging

from portfolio_api.config import Settings
from portfolio_api.core.security import constant_time_equals, verify_pin
from portfolio_api.repositories.admin_record import AdminRecordRepository

logger = logging.getLogger(__name__)


class SecretVerifier:
    def __init__(self, admin_records: AdminRecordRepository, settings: Settings):
        self.admin_records = admin_records
        self.settings = settings

    async def matches(self, secret: str) -> bool:
        pin_hash = await self.admin_records.get_pin_hash() or self.settings.admin_pin_hash
        if pin_hash:
            return verify_pin(secret, pin_hash)

        if self.settings.admin_pin:
            return constant_time_equals(secret, self.settings.admin_pin)

        logger.error("No admin PIN configured; every PIN attempt will fail")
        return False
