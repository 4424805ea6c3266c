"""
Credential Repository

Database operations for registered passkeys. Rows are always read fresh;
the counter and review-flag writes are single-statement updates committed
immediately so they survive a failing request.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.core.public_key import normalize_public_key
from portfolio_api.models.orm.credential import PasskeyCredential


class CredentialRepository:
    """Repository for PasskeyCredential operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> list[PasskeyCredential]:
        """All credentials, oldest first."""
        result = await self.session.execute(
            select(PasskeyCredential).order_by(PasskeyCredential.created_at.asc())
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(PasskeyCredential.id)))
        return result.scalar() or 0

    async def get_by_credential_id(self, credential_id: bytes) -> PasskeyCredential | None:
        """
        Get a credential by its authenticator-assigned ID.

        Args:
            credential_id: Raw credential ID bytes

        Returns:
            PasskeyCredential or None if not found
        """
        result = await self.session.execute(
            select(PasskeyCredential).where(PasskeyCredential.credential_id == credential_id)
        )
        return result.scalar_one_or_none()

    async def add(
        self,
        *,
        credential_id: bytes,
        public_key: object,
        sign_count: int,
        transports: list[str],
        device_type: str,
        backed_up: bool,
        device_label: str,
    ) -> PasskeyCredential:
        """
        Store a newly registered credential.

        The public key is normalized to bytes before it is written.

        Returns:
            Created PasskeyCredential
        """
        credential = PasskeyCredential(
            credential_id=credential_id,
            public_key=normalize_public_key(public_key),
            sign_count=sign_count,
            transports=transports,
            device_type=device_type,
            backed_up=backed_up,
            device_label=device_label,
            created_at=datetime.now(UTC),
        )
        self.session.add(credential)
        await self.session.flush()
        return credential

    async def update_sign_count(self, id: UUID, sign_count: int) -> None:
        """Write only the counter and last-used time for one credential."""
        await self.session.execute(
            update(PasskeyCredential)
            .where(PasskeyCredential.id == id)
            .values(sign_count=sign_count, last_used_at=datetime.now(UTC))
        )
        await self.session.commit()

    async def flag_for_review(self, id: UUID) -> None:
        """Mark a credential that presented a non-advancing counter."""
        await self.session.execute(
            update(PasskeyCredential)
            .where(PasskeyCredential.id == id)
            .values(flagged_at=datetime.now(UTC))
        )
        await self.session.commit()

    async def delete_by_credential_id(self, credential_id: bytes) -> bool:
        """Delete a credential. Returns True if deleted, False if not found."""
        result = await self.session.execute(
            delete(PasskeyCredential).where(PasskeyCredential.credential_id == credential_id)
        )
        await self.session.flush()
        return (result.rowcount or 0) > 0
