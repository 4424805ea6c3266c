"""
Authentication Dependencies

FastAPI dependencies for the admin login routes: bearer token extraction,
client identity, the login service, and the admin session principal.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portfolio_api.config import get_settings
from portfolio_api.core.cache import KeyValueStore, get_store
from portfolio_api.core.database import DbSession
from portfolio_api.core.security import decode_admin_session_token
from portfolio_api.repositories import AdminRecordRepository, CredentialRepository
from portfolio_api.services.email_service import EmailSender, get_email_sender
from portfolio_api.services.login_flow import AdminLoginService

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AdminPrincipal:
    """Admin identity carried by a session JWT."""

    subject: str
    methods: list[str] = field(default_factory=list)
    expires_at: datetime | None = None


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Raw bearer token from the Authorization header, if any."""
    return credentials.credentials if credentials else None


def get_client_identity(request: Request) -> str:
    """
    Network identity used to key lockout and rate limit state.

    When proxy headers are trusted, the identity is the X-Forwarded-For hop
    appended by the outermost trusted proxy, counted from the right. Hops
    further left are written by the client and ignored.
    """
    settings = get_settings()
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if len(hops) >= settings.trusted_proxy_count:
            return hops[-settings.trusted_proxy_count]
    return request.client.host if request.client else "unknown"


def get_kv_store() -> KeyValueStore:
    return get_store()


async def get_login_service(
    db: DbSession,
    store: Annotated[KeyValueStore, Depends(get_kv_store)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> AdminLoginService:
    """Build the login service for one request."""
    return AdminLoginService(
        settings=get_settings(),
        store=store,
        credentials=CredentialRepository(db),
        admin_records=AdminRecordRepository(db),
        email_sender=email_sender,
    )


async def get_current_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> AdminPrincipal:
    """
    Get the admin from a session JWT (required).

    Raises:
        HTTPException: If not authenticated or the token is invalid
    """
    payload = decode_admin_session_token(credentials.credentials) if credentials else None

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AdminPrincipal(
        subject=payload["sub"],
        methods=list(payload.get("amr", [])),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
    )


# Type aliases for cleaner dependency injection
BearerToken = Annotated[str | None, Depends(get_bearer_token)]
ClientIdentity = Annotated[str, Depends(get_client_identity)]
LoginService = Annotated[AdminLoginService, Depends(get_login_service)]
CurrentAdmin = Annotated[AdminPrincipal, Depends(get_current_admin)]
