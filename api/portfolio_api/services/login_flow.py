"""
Admin Login Flow

Drives one login through PIN -> possession factor -> human check ->
authenticated. Progress is held server-side in a flow record keyed by an
opaque flow token, so every step can be checked against the step before it.

Failures at the PIN, one-time code and human check steps share one lockout
counter per client. A lockout does not discard the flow record: once the
countdown ends the client resumes at the step it was on.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from portfolio_api.config import Settings
from portfolio_api.core.cache import Clock, KeyValueStore
from portfolio_api.core.errors import (
    DeliveryFailedError,
    FlowStateError,
    InvalidSecretError,
    UnauthorizedError,
)
from portfolio_api.core.security import create_admin_session_token, generate_token
from portfolio_api.models.enums import LoginStage, PossessionFactor
from portfolio_api.models.orm.credential import PasskeyCredential
from portfolio_api.repositories.admin_record import AdminRecordRepository
from portfolio_api.repositories.credential import CredentialRepository
from portfolio_api.services.challenge_cache import ChallengeCache
from portfolio_api.services.email_service import EmailSender, send_security_alert
from portfolio_api.services.human_check import HumanCheck, verify_human_check
from portfolio_api.services.one_time_code import OneTimeCodeService
from portfolio_api.services.passkey_service import PasskeyService
from portfolio_api.services.rate_limit import LockoutTracker, RateLimiter
from portfolio_api.services.secret_verifier import SecretVerifier
from portfolio_api.services.token_store import RegistrationTokenStore

logger = logging.getLogger(__name__)

FLOW_PREFIX = "login_flow:"
ADMIN_SUBJECT = "admin"


@dataclass
class LoginFlow:
    """Server-side progress of one login attempt."""

    token: str
    stage: LoginStage
    method: str | None = None
    human_check_expression: str | None = None
    human_check_expected: int | None = None

    def to_json(self) -> str:
        data = asdict(self)
        data["stage"] = self.stage.value
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "LoginFlow":
        data = json.loads(raw)
        data["stage"] = LoginStage(data["stage"])
        return cls(**data)


@dataclass
class SecretVerified:
    flow_token: str
    registration_token: str
    passkey_count: int
    possession_factor: PossessionFactor
    stage: LoginStage


@dataclass
class AdminSession:
    access_token: str
    expires_at: datetime
    method: str


class AdminLoginService:
    """Orchestrates the admin login steps and credential management."""

    def __init__(
        self,
        *,
        settings: Settings,
        store: KeyValueStore,
        credentials: CredentialRepository,
        admin_records: AdminRecordRepository,
        email_sender: EmailSender,
        clock: Clock = time.time,
    ):
        self.settings = settings
        self.store = store
        self.email_sender = email_sender
        self.possession_factor = PossessionFactor(settings.possession_factor)

        self.tokens = RegistrationTokenStore(
            store,
            ttl_seconds=settings.registration_token_ttl_seconds,
            sweep_threshold=settings.registration_token_sweep_threshold,
            clock=clock,
        )
        self.lockout = LockoutTracker(
            store,
            threshold=settings.lockout_threshold,
            lockout_seconds=settings.lockout_seconds,
            window_seconds=settings.lockout_window_seconds,
            clock=clock,
        )
        self.secret_limiter = RateLimiter(
            store,
            "pin",
            settings.secret_rate_limit,
            settings.secret_rate_window_seconds,
            clock,
        )
        self.ceremony_limiter = RateLimiter(
            store,
            "passkey_verify",
            settings.ceremony_rate_limit,
            settings.ceremony_rate_window_seconds,
            clock,
        )
        self.code_limiter = RateLimiter(
            store,
            "otp_send",
            settings.ceremony_rate_limit,
            settings.ceremony_rate_window_seconds,
            clock,
        )
        self.secrets = SecretVerifier(admin_records, settings)
        self.passkeys = PasskeyService(
            credentials,
            ChallengeCache(store, settings.challenge_ttl_seconds),
            self.tokens,
            settings,
        )
        self.codes = OneTimeCodeService(store, email_sender, settings.one_time_code_ttl_seconds)

    # ========================================================================
    # Step 1: PIN
    # ========================================================================

    async def verify_secret(self, secret: str, client_id: str) -> SecretVerified:
        """
        Check the admin PIN and open a login flow.

        Args:
            secret: Submitted PIN
            client_id: Caller's network identity

        Returns:
            Flow token, registration token and the number of stored passkeys

        Raises:
            LockedError: Inside a lockout countdown, or this failure started one
            RateLimitedError: Too many submissions in the window
            InvalidSecretError: Wrong PIN
        """
        await self.lockout.ensure_unlocked(client_id)
        await self.secret_limiter.hit(client_id)

        if not await self.secrets.matches(secret):
            await self._record_failure(client_id, "pin")

        registration_token = await self.tokens.issue()
        passkey_count = await self.passkeys.credentials.count()
        flow = LoginFlow(token=generate_token(), stage=LoginStage.AWAITING_POSSESSION)
        await self._save_flow(flow)

        logger.info(
            "Admin PIN verified",
            extra={"client": client_id, "passkey_count": passkey_count},
        )
        return SecretVerified(
            flow_token=flow.token,
            registration_token=registration_token,
            passkey_count=passkey_count,
            possession_factor=self.possession_factor,
            stage=flow.stage,
        )

    # ========================================================================
    # Step 2a: Passkey
    # ========================================================================

    async def begin_registration(self, bearer_token: str | None) -> dict[str, Any]:
        return await self.passkeys.begin_registration(bearer_token)

    async def finish_registration(
        self,
        credential: dict[str, Any],
        user_agent: str | None = None,
        device_name: str | None = None,
    ) -> PasskeyCredential:
        return await self.passkeys.finish_registration(credential, user_agent, device_name)

    async def begin_authentication(self) -> dict[str, Any]:
        self._require_factor(PossessionFactor.PASSKEY)
        return await self.passkeys.begin_authentication()

    async def finish_authentication(
        self, flow_token: str | None, credential: dict[str, Any], client_id: str
    ) -> tuple[LoginFlow, PasskeyCredential]:
        """
        Verify a passkey assertion for an open login flow.

        Returns:
            The flow, now awaiting the human check, and the passkey that signed
        """
        self._require_factor(PossessionFactor.PASSKEY)
        await self.lockout.ensure_unlocked(client_id)
        await self.ceremony_limiter.hit(client_id)

        flow = await self._load_flow(flow_token, LoginStage.AWAITING_POSSESSION)
        passkey = await self.passkeys.finish_authentication(credential)
        return await self._advance(flow, PossessionFactor.PASSKEY.value), passkey

    # ========================================================================
    # Step 2b: One-time code
    # ========================================================================

    async def send_one_time_code(
        self, flow_token: str | None, client_id: str, recipient: str | None = None
    ) -> str:
        """
        Email a fresh code to the admin.

        Returns:
            The address the code was sent to

        Raises:
            DeliveryFailedError: If the email could not be sent
        """
        self._require_factor(PossessionFactor.ONE_TIME_CODE)
        await self.lockout.ensure_unlocked(client_id)
        await self._load_flow(flow_token, LoginStage.AWAITING_POSSESSION)
        await self.code_limiter.hit(client_id)

        address = self._resolve_recipient(recipient)
        await self.codes.send(address)
        return address

    async def verify_one_time_code(
        self, flow_token: str | None, code: str, client_id: str, recipient: str | None = None
    ) -> LoginFlow:
        self._require_factor(PossessionFactor.ONE_TIME_CODE)
        await self.lockout.ensure_unlocked(client_id)
        flow = await self._load_flow(flow_token, LoginStage.AWAITING_POSSESSION)

        if not await self.codes.verify(self._resolve_recipient(recipient), code):
            await self._record_failure(client_id, "one_time_code")

        return await self._advance(flow, PossessionFactor.ONE_TIME_CODE.value)

    # ========================================================================
    # Step 3: Human check
    # ========================================================================

    async def issue_human_check(self, flow_token: str | None) -> str:
        """
        Generate a new arithmetic question for the flow.

        Returns:
            Expression to display, e.g. "17 × 4"
        """
        flow = await self._load_flow(flow_token, LoginStage.AWAITING_HUMAN_CHECK)
        check = HumanCheck.generate()
        flow.human_check_expression = check.expression
        flow.human_check_expected = check.expected
        await self._save_flow(flow)
        return check.expression

    async def verify_human_check(
        self,
        flow_token: str | None,
        answer: int | str,
        client_id: str,
        user_agent: str | None = None,
    ) -> AdminSession:
        """
        Check the answer and finish the login.

        Returns:
            Admin session for the authenticated state
        """
        await self.lockout.ensure_unlocked(client_id)
        flow = await self._load_flow(flow_token, LoginStage.AWAITING_HUMAN_CHECK)
        if flow.human_check_expected is None:
            raise FlowStateError("Request a human check question first")

        if not verify_human_check(answer, flow.human_check_expected):
            await self._record_failure(client_id, "human_check")

        return await self._complete(flow, client_id, user_agent)

    # ========================================================================
    # Credential management
    # ========================================================================

    async def list_credentials(self, bearer_token: str | None) -> list[PasskeyCredential]:
        await self.tokens.require(bearer_token)
        return await self.passkeys.list_credentials()

    async def delete_credential(
        self, bearer_token: str | None, credential_id: bytes, secret: str, client_id: str
    ) -> bool:
        """
        Delete a passkey after re-checking the PIN.

        Returns:
            True if deleted, False if no such passkey

        Raises:
            UnauthorizedError: Bearer token missing or expired
            InvalidSecretError: Wrong PIN; nothing is deleted
            LockedError: Inside a lockout countdown, or this failure started one
        """
        await self.tokens.require(bearer_token)
        await self.lockout.ensure_unlocked(client_id)

        if not await self.secrets.matches(secret):
            await self._record_failure(client_id, "pin")

        return await self.passkeys.delete_credential(credential_id)

    # ========================================================================
    # Private Helpers
    # ========================================================================

    async def _record_failure(self, client_id: str, step: str) -> None:
        """Count a failure, then raise LockedError or InvalidSecretError."""
        logger.info(f"Admin login step failed: {step}", extra={"client": client_id})
        await self.lockout.record_failure(client_id)
        raise InvalidSecretError()

    async def _load_flow(self, flow_token: str | None, stage: LoginStage) -> LoginFlow:
        raw = await self.store.get(f"{FLOW_PREFIX}{flow_token}") if flow_token else None
        if raw is None:
            raise FlowStateError("Login expired. Please re-enter PIN.")

        flow = LoginFlow.from_json(raw)
        if flow.stage is not stage:
            raise FlowStateError()
        return flow

    async def _save_flow(self, flow: LoginFlow) -> None:
        await self.store.set(
            f"{FLOW_PREFIX}{flow.token}", flow.to_json(), self.settings.login_flow_ttl_seconds
        )

    async def _advance(self, flow: LoginFlow, method: str) -> LoginFlow:
        flow.stage = flow.stage.next()
        flow.method = method
        await self._save_flow(flow)
        logger.info(f"Admin login possession factor verified: {method}")
        return flow

    async def _complete(
        self, flow: LoginFlow, client_id: str, user_agent: str | None
    ) -> AdminSession:
        await self.store.delete(f"{FLOW_PREFIX}{flow.token}")
        await self.lockout.reset(client_id)

        method = flow.method or self.possession_factor.value
        access_token, expires_at = create_admin_session_token(ADMIN_SUBJECT, method)
        logger.info("Admin login completed", extra={"client": client_id, "method": method})

        await send_security_alert(
            self.email_sender, self.settings.admin_email, method, client_id, user_agent
        )
        return AdminSession(access_token=access_token, expires_at=expires_at, method=method)

    def _require_factor(self, factor: PossessionFactor) -> None:
        if self.possession_factor is not factor:
            raise FlowStateError(f"{factor.value.replace('_', ' ')} login is not enabled")

    def _resolve_recipient(self, recipient: str | None) -> str:
        admin_email = self.settings.admin_email
        if not admin_email:
            raise DeliveryFailedError("No admin email configured")
        if recipient and recipient.strip().lower() != admin_email.strip().lower():
            raise UnauthorizedError("Unknown recipient")
        return admin_email
