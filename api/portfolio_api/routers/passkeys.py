"""
Passkey/WebAuthn Router

Provides endpoints for the passkey possession factor:
- Registration: Generate options and verify credential (registration token)
- Authentication: Generate challenge and verify (advances the login flow)
- Management: List and delete passkeys (registration token, PIN to delete)
"""

import binascii
import logging

from fastapi import APIRouter, HTTPException, Request, status
from webauthn.helpers import base64url_to_bytes

from portfolio_api.core.auth import BearerToken, ClientIdentity, LoginService
from portfolio_api.core.errors import NoCredentialsError
from portfolio_api.models.contracts.passkeys import (
    PasskeyAuthOptionsResponse,
    PasskeyAuthVerifyRequest,
    PasskeyAuthVerifyResponse,
    PasskeyDeleteRequest,
    PasskeyDeleteResponse,
    PasskeyListResponse,
    PasskeyPublic,
    PasskeyRegistrationOptionsResponse,
    PasskeyRegistrationVerifyRequest,
    PasskeyRegistrationVerifyResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/passkeys", tags=["passkeys"])


# =============================================================================
# Registration Endpoints
# =============================================================================


@router.post(
    "/register/options",
    response_model=PasskeyRegistrationOptionsResponse,
    summary="Get passkey registration options",
    description="Generate WebAuthn registration options for a new admin passkey. "
    "Requires the registration token from the PIN step as a bearer token.",
)
async def get_registration_options(
    token: BearerToken,
    service: LoginService,
) -> PasskeyRegistrationOptionsResponse:
    """Generate WebAuthn registration options."""
    options = await service.begin_registration(token)
    return PasskeyRegistrationOptionsResponse(options=options)


@router.post(
    "/register/verify",
    response_model=PasskeyRegistrationVerifyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Verify passkey registration",
    description="Verify the WebAuthn registration response and store the new passkey.",
)
async def verify_registration(
    request: Request,
    body: PasskeyRegistrationVerifyRequest,
    service: LoginService,
) -> PasskeyRegistrationVerifyResponse:
    """Verify passkey registration and store the credential."""
    passkey = await service.finish_registration(
        body.credential,
        user_agent=request.headers.get("user-agent"),
        device_name=body.device_name,
    )
    public = PasskeyPublic.from_credential(passkey)
    return PasskeyRegistrationVerifyResponse(
        verified=True,
        credential_id=public.id,
        label=public.label,
    )


# =============================================================================
# Authentication Endpoints
# =============================================================================


@router.post(
    "/authenticate/options",
    response_model=PasskeyAuthOptionsResponse,
    summary="Get passkey authentication options",
    description="Generate a WebAuthn challenge restricted to the registered passkeys. "
    "Returns ok=false with reason 'none-registered' when there are none.",
)
async def get_authentication_options(service: LoginService) -> PasskeyAuthOptionsResponse:
    """Generate WebAuthn authentication options."""
    try:
        options = await service.begin_authentication()
    except NoCredentialsError:
        return PasskeyAuthOptionsResponse(ok=False, reason="none-registered")
    return PasskeyAuthOptionsResponse(options=options)


@router.post(
    "/authenticate/verify",
    response_model=PasskeyAuthVerifyResponse,
    summary="Verify passkey authentication",
    description="Verify the WebAuthn assertion. On success the login moves to the human check.",
)
async def verify_authentication(
    body: PasskeyAuthVerifyRequest,
    client_id: ClientIdentity,
    service: LoginService,
) -> PasskeyAuthVerifyResponse:
    """Verify passkey authentication for an open login flow."""
    flow, passkey = await service.finish_authentication(
        body.flow_token, body.credential, client_id
    )
    return PasskeyAuthVerifyResponse(stage=flow.stage, sign_count=passkey.sign_count)


# =============================================================================
# Management Endpoints
# =============================================================================


@router.get(
    "",
    response_model=PasskeyListResponse,
    summary="List passkeys",
    description="List registered admin passkeys. Requires the registration token.",
)
async def list_passkeys(token: BearerToken, service: LoginService) -> PasskeyListResponse:
    """List all admin passkeys."""
    passkeys = await service.list_credentials(token)
    return PasskeyListResponse(
        passkeys=[PasskeyPublic.from_credential(p) for p in passkeys],
        count=len(passkeys),
    )


@router.post(
    "/{credential_id}/delete",
    response_model=PasskeyDeleteResponse,
    summary="Delete a passkey",
    description="Delete a passkey. Requires the registration token and the admin PIN.",
)
async def delete_passkey(
    credential_id: str,
    body: PasskeyDeleteRequest,
    token: BearerToken,
    client_id: ClientIdentity,
    service: LoginService,
) -> PasskeyDeleteResponse:
    """Delete a passkey after re-checking the PIN."""
    raw_id = _decode_credential_id(credential_id)
    deleted = await service.delete_credential(token, raw_id, body.pin, client_id)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Passkey not found",
        )

    return PasskeyDeleteResponse(deleted=True, credential_id=credential_id)


def _decode_credential_id(credential_id: str) -> bytes:
    try:
        return base64url_to_bytes(credential_id)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Passkey not found",
        ) from e

