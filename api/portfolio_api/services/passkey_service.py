"""
Passkey Service - WebAuthn ceremonies for the single admin principal.

Handles passkey registration, authentication, and credential management
using the py_webauthn library for WebAuthn protocol compliance.

Origin and relying-party checks run before the library and raise
OriginMismatchError with a security warning in the log.
The signature counter is enforced here after the assertion signature has
been verified.
"""

import hashlib
import json
import logging
from typing import Any

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import (
    parse_attestation_object,
    parse_authentication_credential_json,
    parse_authenticator_data,
    parse_client_data_json,
    parse_registration_credential_json,
)
from webauthn.helpers.structs import (
    AuthenticatorAttachment,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from portfolio_api.config import Settings
from portfolio_api.core.errors import (
    CeremonyFailedError,
    CorruptedCredentialError,
    NoCredentialsError,
    OriginMismatchError,
    ReplaySuspectedError,
)
from portfolio_api.core.public_key import normalize_public_key
from portfolio_api.models.orm.credential import PasskeyCredential
from portfolio_api.repositories.credential import CredentialRepository
from portfolio_api.services.challenge_cache import (
    AUTHENTICATION_CONTEXT,
    REGISTRATION_CONTEXT,
    ChallengeCache,
)
from portfolio_api.services.token_store import RegistrationTokenStore

logger = logging.getLogger(__name__)

ADMIN_USER_HANDLE = b"portfolio-admin"
ADMIN_USER_NAME = "admin"

# Checked in order; first match wins
_DEVICE_PATTERNS = [
    ("iPhone", "iPhone"),
    ("iPad", "iPad"),
    ("Android", "Android"),
    ("CrOS", "ChromeOS"),
    ("Macintosh", "Mac"),
    ("Mac OS X", "Mac"),
    ("Windows", "Windows"),
    ("Linux", "Linux"),
]

_ROAMING_TRANSPORTS = {"usb", "nfc", "ble"}


def describe_device(user_agent: str | None, transports: list[str] | None = None) -> str:
    """
    Guess a label for a new passkey from the registering client.

    Args:
        user_agent: User-Agent header of the registration request
        transports: Transport hints reported by the authenticator

    Returns:
        Label such as "Mac passkey" or "Security key"
    """
    transports = transports or []
    if "internal" not in transports and _ROAMING_TRANSPORTS.intersection(transports):
        return "Security key"

    for marker, name in _DEVICE_PATTERNS:
        if user_agent and marker in user_agent:
            return f"{name} passkey"
    return "Passkey"


def _to_transports(values: list[str] | None) -> list[AuthenticatorTransport] | None:
    transports = []
    for value in values or []:
        try:
            transports.append(AuthenticatorTransport(value))
        except ValueError:
            continue
    return transports or None


class PasskeyService:
    """Service for WebAuthn passkey operations."""

    def __init__(
        self,
        credentials: CredentialRepository,
        challenges: ChallengeCache,
        tokens: RegistrationTokenStore,
        settings: Settings,
    ):
        self.credentials = credentials
        self.challenges = challenges
        self.tokens = tokens
        self.settings = settings

    # ========================================================================
    # Registration
    # ========================================================================

    async def begin_registration(self, bearer_token: str | None) -> dict[str, Any]:
        """
        Generate WebAuthn registration options for a new admin passkey.

        Args:
            bearer_token: Registration-session token from the PIN step

        Returns:
            Dictionary with registration options (JSON-serializable)

        Raises:
            UnauthorizedError: If the token is missing or expired
        """
        await self.tokens.require(bearer_token)

        # Exclude existing credentials to prevent duplicate registrations
        existing = await self.credentials.list_all()
        exclude_credentials = [
            PublicKeyCredentialDescriptor(
                id=credential.credential_id,
                transports=_to_transports(credential.transports),
            )
            for credential in existing
        ]

        options = generate_registration_options(
            rp_id=self.settings.webauthn_rp_id,
            rp_name=self.settings.webauthn_rp_name,
            user_id=ADMIN_USER_HANDLE,
            user_name=ADMIN_USER_NAME,
            user_display_name=self.settings.webauthn_rp_name,
            exclude_credentials=exclude_credentials or None,
            authenticator_selection=AuthenticatorSelectionCriteria(
                authenticator_attachment=AuthenticatorAttachment.PLATFORM,
                resident_key=ResidentKeyRequirement.PREFERRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
        )

        await self.challenges.put(REGISTRATION_CONTEXT, options.challenge)
        return json.loads(options_to_json(options))

    async def finish_registration(
        self,
        credential: dict[str, Any],
        user_agent: str | None = None,
        device_name: str | None = None,
    ) -> PasskeyCredential:
        """
        Verify a registration response and store the new credential.

        Args:
            credential: Registration response from the browser
            user_agent: Used to guess a device label
            device_name: Optional explicit label

        Returns:
            Created PasskeyCredential

        Raises:
            ChallengeExpiredError: No pending registration challenge
            OriginMismatchError: Origin or relying party not ours
            CeremonyFailedError: Malformed response or verification failure
        """
        # Single-use: taken before anything else can fail
        expected_challenge = await self.challenges.consume(REGISTRATION_CONTEXT)

        try:
            parsed = parse_registration_credential_json(json.dumps(credential))
            client_data = parse_client_data_json(parsed.response.client_data_json)
            attestation = parse_attestation_object(parsed.response.attestation_object)
        except Exception as e:
            raise CeremonyFailedError(f"Malformed registration response: {e}") from e

        self._check_origin(client_data.origin, "registration")
        self._check_rp_id_hash(attestation.auth_data.rp_id_hash, "registration")

        try:
            verification = verify_registration_response(
                credential=parsed,
                expected_challenge=expected_challenge,
                expected_origin=self.settings.webauthn_origins,
                expected_rp_id=self.settings.webauthn_rp_id,
            )
        except Exception as e:
            raise CeremonyFailedError(f"Registration verification failed: {e}") from e

        if await self.credentials.get_by_credential_id(verification.credential_id):
            raise CeremonyFailedError("Passkey is already registered")

        transports = [
            getattr(transport, "value", str(transport))
            for transport in parsed.response.transports or []
        ]

        stored = await self.credentials.add(
            credential_id=verification.credential_id,
            public_key=verification.credential_public_key,
            sign_count=verification.sign_count,
            transports=transports,
            device_type=getattr(
                verification.credential_device_type,
                "value",
                str(verification.credential_device_type),
            ),
            backed_up=verification.credential_backed_up,
            device_label=device_name or describe_device(user_agent, transports),
        )

        logger.info(
            f"Registered admin passkey '{stored.device_label}'",
            extra={"transports": transports},
        )
        return stored

    # ========================================================================
    # Authentication
    # ========================================================================

    async def begin_authentication(self) -> dict[str, Any]:
        """
        Generate WebAuthn authentication options restricted to known passkeys.

        Returns:
            Dictionary with authentication options (JSON-serializable)

        Raises:
            NoCredentialsError: If no passkeys are registered
        """
        existing = await self.credentials.list_all()
        if not existing:
            raise NoCredentialsError()

        options = generate_authentication_options(
            rp_id=self.settings.webauthn_rp_id,
            allow_credentials=[
                PublicKeyCredentialDescriptor(
                    id=credential.credential_id,
                    transports=_to_transports(credential.transports),
                )
                for credential in existing
            ],
            user_verification=UserVerificationRequirement.PREFERRED,
        )

        await self.challenges.put(AUTHENTICATION_CONTEXT, options.challenge)
        return json.loads(options_to_json(options))

    async def finish_authentication(self, credential: dict[str, Any]) -> PasskeyCredential:
        """
        Verify an authentication response and advance the stored counter.

        Args:
            credential: Authentication response from the browser

        Returns:
            The PasskeyCredential that signed, with its new counter

        Raises:
            ChallengeExpiredError: No pending login challenge
            CeremonyFailedError: Unknown credential, malformed response or bad signature
            CorruptedCredentialError: Stored public key is unusable
            OriginMismatchError: Origin or relying party not ours
            ReplaySuspectedError: Counter did not advance
        """
        expected_challenge = await self.challenges.consume(AUTHENTICATION_CONTEXT)

        try:
            parsed = parse_authentication_credential_json(json.dumps(credential))
            client_data = parse_client_data_json(parsed.response.client_data_json)
            auth_data = parse_authenticator_data(parsed.response.authenticator_data)
        except Exception as e:
            raise CeremonyFailedError(f"Malformed authentication response: {e}") from e

        stored = await self.credentials.get_by_credential_id(parsed.raw_id)
        if stored is None:
            logger.warning("Authentication attempted with an unknown passkey")
            raise CeremonyFailedError("Unknown credential")

        public_key = normalize_public_key(stored.public_key)
        if not public_key:
            logger.error(
                f"Stored public key for passkey '{stored.device_label}' is empty",
                extra={"passkey_id": str(stored.id)},
            )
            raise CorruptedCredentialError()

        self._check_origin(client_data.origin, "authentication")
        self._check_rp_id_hash(auth_data.rp_id_hash, "authentication")

        try:
            # Counter is checked below once the signature is known to be genuine
            verification = verify_authentication_response(
                credential=parsed,
                expected_challenge=expected_challenge,
                expected_origin=self.settings.webauthn_origins,
                expected_rp_id=self.settings.webauthn_rp_id,
                credential_public_key=public_key,
                credential_current_sign_count=0,
            )
        except Exception as e:
            raise CeremonyFailedError(f"Authentication verification failed: {e}") from e

        new_count = verification.new_sign_count
        if not self._counter_advanced(stored.sign_count, new_count):
            await self.credentials.flag_for_review(stored.id)
            logger.warning(
                f"Possible cloned passkey '{stored.device_label}': counter {new_count} "
                f"not greater than stored {stored.sign_count}",
                extra={"passkey_id": str(stored.id)},
            )
            raise ReplaySuspectedError()

        await self.credentials.update_sign_count(stored.id, new_count)
        stored.sign_count = new_count

        logger.info(f"Admin passkey '{stored.device_label}' verified")
        return stored

    # ========================================================================
    # Passkey Management
    # ========================================================================

    async def list_credentials(self) -> list[PasskeyCredential]:
        return await self.credentials.list_all()

    async def delete_credential(self, credential_id: bytes) -> bool:
        """
        Delete a passkey.

        Returns:
            True if deleted, False if not found
        """
        deleted = await self.credentials.delete_by_credential_id(credential_id)
        if deleted:
            logger.info("Deleted admin passkey")
        return deleted

    # ========================================================================
    # Private Helpers
    # ========================================================================

    def _check_origin(self, origin: str, ceremony: str) -> None:
        if origin not in self.settings.webauthn_origins:
            logger.warning(
                f"Security violation: {ceremony} response from unexpected origin",
                extra={"origin": origin, "expected": self.settings.webauthn_origins},
            )
            raise OriginMismatchError()

    def _check_rp_id_hash(self, rp_id_hash: bytes, ceremony: str) -> None:
        expected = hashlib.sha256(self.settings.webauthn_rp_id.encode("utf-8")).digest()
        if rp_id_hash != expected:
            logger.warning(
                f"Security violation: {ceremony} response for another relying party",
                extra={"rp_id": self.settings.webauthn_rp_id},
            )
            raise OriginMismatchError()

    def _counter_advanced(self, stored_count: int, new_count: int) -> bool:
        if new_count > stored_count:
            return True
        # Authenticators without a counter always report zero
        return self.settings.webauthn_allow_zero_sign_count and new_count == stored_count == 0
