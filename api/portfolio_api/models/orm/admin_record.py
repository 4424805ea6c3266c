"""
AdminRecord ORM model.

The single logical admin record. Holds the comparison value for the shared
PIN; passkeys hang off it in admin_passkeys.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_api.models.orm.base import Base

ADMIN_RECORD_ID = "main"


class AdminRecord(Base):
    """Admin principal record (one row, id='main')."""

    __tablename__ = "admin_records"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=ADMIN_RECORD_ID)
    pin_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=text("NOW()"),
        onupdate=lambda: datetime.now(UTC),
    )
