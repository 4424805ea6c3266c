"""
One-Time Code Router

Email fallback for the possession step, enabled with
PORTFOLIO_POSSESSION_FACTOR=one_time_code.
"""

import logging

from fastapi import APIRouter

from portfolio_api.config import get_settings
from portfolio_api.core.auth import ClientIdentity, LoginService
from portfolio_api.models.contracts.auth import (
    OneTimeCodeSendRequest,
    OneTimeCodeSendResponse,
    OneTimeCodeVerifyRequest,
    StageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/otp", tags=["otp"])


@router.post(
    "/send",
    response_model=OneTimeCodeSendResponse,
    summary="Send a one-time code",
    description="Email a six-digit code to the admin. A delivery failure returns 502 "
    "and should be retried by sending again.",
)
async def send_code(
    body: OneTimeCodeSendRequest,
    client_id: ClientIdentity,
    service: LoginService,
) -> OneTimeCodeSendResponse:
    await service.send_one_time_code(body.flow_token, client_id, body.recipient)
    return OneTimeCodeSendResponse(expires_in=get_settings().one_time_code_ttl_seconds)


@router.post(
    "/verify",
    response_model=StageResponse,
    summary="Verify a one-time code",
    description="Check the emailed code. On success the login moves to the human check.",
)
async def verify_code(
    body: OneTimeCodeVerifyRequest,
    client_id: ClientIdentity,
    service: LoginService,
) -> StageResponse:
    flow = await service.verify_one_time_code(
        body.flow_token, body.code, client_id, body.recipient
    )
    return StageResponse(stage=flow.stage)
