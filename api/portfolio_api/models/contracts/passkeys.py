"""
Passkey/WebAuthn contract models.

API request and response models for passkey (WebAuthn) operations.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from webauthn.helpers import bytes_to_base64url

from portfolio_api.models.enums import LoginStage
from portfolio_api.models.orm.credential import PasskeyCredential

# =============================================================================
# Registration
# =============================================================================


class PasskeyRegistrationOptionsResponse(BaseModel):
    """Response with WebAuthn registration options for the browser."""

    options: dict[str, Any] = Field(
        description="WebAuthn registration options JSON for navigator.credentials.create()"
    )


class PasskeyRegistrationVerifyRequest(BaseModel):
    """Request to verify passkey registration."""

    credential: dict[str, Any] = Field(
        description="WebAuthn registration credential JSON from navigator.credentials.create()"
    )
    device_name: str | None = Field(
        default=None,
        description="Optional friendly name; guessed from the browser when omitted",
        max_length=255,
    )


class PasskeyRegistrationVerifyResponse(BaseModel):
    """Response after successful passkey registration."""

    verified: bool = Field(description="Whether registration was successful")
    credential_id: str = Field(description="Base64url credential ID")
    label: str = Field(description="Label of the passkey")


# =============================================================================
# Authentication
# =============================================================================


class PasskeyAuthOptionsResponse(BaseModel):
    """WebAuthn authentication options, or the reason none can be issued."""

    ok: bool = True
    options: dict[str, Any] | None = Field(
        default=None,
        description="WebAuthn authentication options JSON for navigator.credentials.get()",
    )
    reason: str | None = Field(default=None, description="'none-registered' when ok is false")


class PasskeyAuthVerifyRequest(BaseModel):
    """Request to verify passkey authentication."""

    flow_token: str = Field(description="Flow token from the PIN step")
    credential: dict[str, Any] = Field(
        description="WebAuthn authentication credential JSON from navigator.credentials.get()"
    )


class PasskeyAuthVerifyResponse(BaseModel):
    ok: bool = True
    stage: LoginStage
    sign_count: int = Field(description="Counter stored for the credential")


# =============================================================================
# Passkey Management
# =============================================================================


class PasskeyPublic(BaseModel):
    """Public representation of an admin passkey."""

    id: str = Field(description="Base64url credential ID")
    label: str = Field(description="Device label")
    transports: list[str] = Field(description="Transport hints reported at registration")
    created_at: datetime = Field(description="When the passkey was registered")
    last_used_at: datetime | None = Field(
        default=None, description="When the passkey last signed a login"
    )
    flagged: bool = Field(default=False, description="Presented a non-advancing counter")

    @classmethod
    def from_credential(cls, credential: PasskeyCredential) -> "PasskeyPublic":
        return cls(
            id=bytes_to_base64url(credential.credential_id),
            label=credential.device_label,
            transports=list(credential.transports or []),
            created_at=credential.created_at,
            last_used_at=credential.last_used_at,
            flagged=credential.flagged_at is not None,
        )


class PasskeyListResponse(BaseModel):
    """Response with the list of admin passkeys."""

    passkeys: list[PasskeyPublic] = Field(description="Registered passkeys, oldest first")
    count: int = Field(description="Total number of passkeys")


class PasskeyDeleteRequest(BaseModel):
    """PIN re-entry required to delete a passkey."""

    pin: str = Field(..., min_length=1, max_length=64)


class PasskeyDeleteResponse(BaseModel):
    """Response after deleting a passkey."""

    deleted: bool = Field(description="Whether the passkey was deleted")
    credential_id: str = Field(description="Base64url ID of the deleted passkey")
