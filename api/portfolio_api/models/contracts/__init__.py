"""Pydantic contracts (API request/response schemas)."""

from portfolio_api.models.contracts.auth import (
    AdminSessionResponse,
    HumanCheckResponse,
    HumanCheckVerifyRequest,
    OneTimeCodeSendRequest,
    OneTimeCodeSendResponse,
    OneTimeCodeVerifyRequest,
    PinVerifyRequest,
    PinVerifyResponse,
    SessionInfoResponse,
    StageResponse,
)
from portfolio_api.models.contracts.common import (
    ErrorResponse,
    HealthResponse,
)
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

__all__ = [
    # Auth
    "AdminSessionResponse",
    "HumanCheckResponse",
    "HumanCheckVerifyRequest",
    "OneTimeCodeSendRequest",
    "OneTimeCodeSendResponse",
    "OneTimeCodeVerifyRequest",
    "PinVerifyRequest",
    "PinVerifyResponse",
    "SessionInfoResponse",
    "StageResponse",
    # Common
    "ErrorResponse",
    "HealthResponse",
    # Passkeys
    "PasskeyAuthOptionsResponse",
    "PasskeyAuthVerifyRequest",
    "PasskeyAuthVerifyResponse",
    "PasskeyDeleteRequest",
    "PasskeyDeleteResponse",
    "PasskeyListResponse",
    "PasskeyPublic",
    "PasskeyRegistrationOptionsResponse",
    "PasskeyRegistrationVerifyRequest",
    "PasskeyRegistrationVerifyResponse",
]
