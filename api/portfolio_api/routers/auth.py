"""
Admin Login Router

Provides the PIN and human check steps of the admin login and session
introspection. The possession factor lives in the passkeys and otp routers.
"""

import logging

from fastapi import APIRouter, Query, Request

from portfolio_api.core.auth import ClientIdentity, CurrentAdmin, LoginService
from portfolio_api.models.contracts.auth import (
    AdminSessionResponse,
    HumanCheckResponse,
    HumanCheckVerifyRequest,
    PinVerifyRequest,
    PinVerifyResponse,
    SessionInfoResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# PIN
# =============================================================================


@router.post(
    "/pin/verify",
    response_model=PinVerifyResponse,
    summary="Verify admin PIN",
    description="First login step. Returns a flow token for the following steps and a "
    "short-lived registration token for passkey management.",
)
async def verify_pin(
    body: PinVerifyRequest,
    client_id: ClientIdentity,
    service: LoginService,
) -> PinVerifyResponse:
    result = await service.verify_secret(body.pin, client_id)
    return PinVerifyResponse(
        flow_token=result.flow_token,
        registration_token=result.registration_token,
        passkey_count=result.passkey_count,
        possession_factor=result.possession_factor,
        stage=result.stage,
    )


# =============================================================================
# Human check
# =============================================================================


@router.get(
    "/human-check",
    response_model=HumanCheckResponse,
    summary="Get a human check question",
    description="Issue a new arithmetic question for a login that passed its possession step.",
)
async def get_human_check(
    service: LoginService,
    flow_token: str = Query(..., description="Flow token from the PIN step"),
) -> HumanCheckResponse:
    expression = await service.issue_human_check(flow_token)
    return HumanCheckResponse(expression=expression)


@router.post(
    "/human-check/verify",
    response_model=AdminSessionResponse,
    summary="Verify human check answer",
    description="Final login step. Returns the admin session token.",
)
async def verify_human_check(
    request: Request,
    body: HumanCheckVerifyRequest,
    client_id: ClientIdentity,
    service: LoginService,
) -> AdminSessionResponse:
    session = await service.verify_human_check(
        body.flow_token,
        body.answer,
        client_id,
        user_agent=request.headers.get("user-agent"),
    )
    return AdminSessionResponse(
        access_token=session.access_token,
        expires_at=session.expires_at,
        method=session.method,
    )


# =============================================================================
# Session
# =============================================================================


@router.get(
    "/session",
    response_model=SessionInfoResponse,
    summary="Current admin session",
    description="Validate the admin session token and describe it.",
)
async def get_session(admin: CurrentAdmin) -> SessionInfoResponse:
    return SessionInfoResponse(
        subject=admin.subject,
        methods=admin.methods,
        expires_at=admin.expires_at,
    )
