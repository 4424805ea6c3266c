"""
Admin login contract models.

Request and response models for the PIN, one-time code, human check and
session endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from portfolio_api.models.enums import LoginStage, PossessionFactor

# =============================================================================
# PIN
# =============================================================================


class PinVerifyRequest(BaseModel):
    """Request to verify the admin PIN."""

    pin: str = Field(..., min_length=1, max_length=64, description="Admin PIN")


class PinVerifyResponse(BaseModel):
    """Response after a correct PIN."""

    ok: bool = True
    flow_token: str = Field(description="Identifies this login; send it with every later step")
    registration_token: str = Field(
        description="Bearer token for passkey registration and management (5 minutes)"
    )
    passkey_count: int = Field(description="Number of registered passkeys")
    possession_factor: PossessionFactor = Field(description="Second step to perform")
    stage: LoginStage = Field(description="Current login stage")


# =============================================================================
# One-time code
# =============================================================================


class OneTimeCodeSendRequest(BaseModel):
    """Request to email a one-time code."""

    flow_token: str
    recipient: str | None = Field(
        default=None, description="Admin address; defaults to the configured one"
    )


class OneTimeCodeSendResponse(BaseModel):
    ok: bool = True
    expires_in: int = Field(description="Seconds until the code expires")


class OneTimeCodeVerifyRequest(BaseModel):
    """Request to verify an emailed one-time code."""

    flow_token: str
    code: str = Field(..., min_length=1, max_length=12)
    recipient: str | None = None


# =============================================================================
# Human check
# =============================================================================


class HumanCheckResponse(BaseModel):
    """Arithmetic question to display."""

    expression: str = Field(description="Expression such as '17 × 4'")


class HumanCheckVerifyRequest(BaseModel):
    flow_token: str
    answer: int = Field(description="Result of the displayed expression")


# =============================================================================
# Flow progress and session
# =============================================================================


class StageResponse(BaseModel):
    """Login flow position after a completed step."""

    ok: bool = True
    stage: LoginStage


class AdminSessionResponse(BaseModel):
    """Admin session granted when the login completes."""

    ok: bool = True
    stage: LoginStage = LoginStage.AUTHENTICATED
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    method: str = Field(description="Possession factor used for this login")


class SessionInfoResponse(BaseModel):
    """Introspection of the current admin session."""

    authenticated: bool = True
    subject: str
    methods: list[str]
    expires_at: datetime | None = None
