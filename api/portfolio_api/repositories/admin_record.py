"""Repository for the single AdminRecord row."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.models.orm.admin_record import ADMIN_RECORD_ID, AdminRecord


class AdminRecordRepository:
    """Read and write the admin record."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self) -> AdminRecord | None:
        result = await self.session.execute(
            select(AdminRecord).where(AdminRecord.id == ADMIN_RECORD_ID)
        )
        return result.scalar_one_or_none()

    async def get_pin_hash(self) -> str | None:
        record = await self.get()
        return record.pin_hash if record else None

    async def set_pin_hash(self, pin_hash: str) -> AdminRecord:
        """Store the PIN hash, creating the record if needed."""
        record = await self.get()

        if record is None:
            record = AdminRecord(id=ADMIN_RECORD_ID, pin_hash=pin_hash)
            self.session.add(record)
        else:
            record.pin_hash = pin_hash

        await self.session.flush()
        return record
