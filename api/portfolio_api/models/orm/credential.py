"""
Passkey (WebAuthn) ORM model.

Public-key credentials registered for the administrative principal.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

import sqlalchemy
from sqlalchemy import Boolean, DateTime, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_api.models.orm.base import Base


class PasskeyCredential(Base):
    """WebAuthn credential held by the admin."""

    __tablename__ = "admin_passkeys"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    # Owning principal; always the single admin record
    admin_id: Mapped[str] = mapped_column(String(32), default="main")

    # WebAuthn credential data (required for verification)
    credential_id: Mapped[bytes] = mapped_column(sqlalchemy.LargeBinary)
    public_key: Mapped[bytes] = mapped_column(sqlalchemy.LargeBinary)
    sign_count: Mapped[int] = mapped_column(Integer, default=0)

    # Credential metadata
    transports: Mapped[list] = mapped_column(JSONB, default=list)  # internal, hybrid, usb, nfc, ble
    device_type: Mapped[str] = mapped_column(String(50), default="single_device")
    backed_up: Mapped[bool] = mapped_column(Boolean, default=False)
    device_label: Mapped[str] = mapped_column(String(255), default="Passkey")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=text("NOW()"),
    )
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    # Set when a non-advancing signature counter was presented
    flagged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        Index("ix_admin_passkeys_credential_id", "credential_id", unique=True),
    )
