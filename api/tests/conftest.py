"""
Pytest fixtures for the Portfolio Admin API.

This module provides:
1. Environment setup before settings are loaded
2. In-memory stand-ins for the credential store and email collaborator
3. A software authenticator that performs real ES256 WebAuthn ceremonies
4. A login service wired to a fake clock
"""

import hashlib
import json
import os
import sys
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import cbor2
import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Set environment variables BEFORE any imports that might load settings
# This must happen at module level, not in fixtures, to run before test collection
os.environ.setdefault("PORTFOLIO_ENVIRONMENT", "testing")
os.environ.setdefault("PORTFOLIO_SECRET_KEY", "test-secret-key-for-testing-must-be-32-chars")
os.environ.setdefault("PORTFOLIO_ADMIN_PIN", "842091")
os.environ.setdefault("PORTFOLIO_ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("PORTFOLIO_WEBAUTHN_RP_ID", "localhost")
os.environ.setdefault("PORTFOLIO_WEBAUTHN_ORIGIN", "http://localhost:5173")

from webauthn.helpers import bytes_to_base64url  # noqa: E402

from portfolio_api.config import Settings, clear_settings_cache, get_settings  # noqa: E402
from portfolio_api.core.cache import MemoryStore, reset_store  # noqa: E402
from portfolio_api.core.database import reset_db_state  # noqa: E402
from portfolio_api.core.errors import DeliveryFailedError  # noqa: E402
from portfolio_api.core.public_key import normalize_public_key  # noqa: E402
from portfolio_api.models.orm.credential import PasskeyCredential  # noqa: E402
from portfolio_api.services.login_flow import AdminLoginService  # noqa: E402

ADMIN_PIN = "842091"
ORIGIN = "http://localhost:5173"
RP_ID = "localhost"


# ==================== TEST DOUBLES ====================


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCredentialRepository:
    """In-memory CredentialRepository."""

    def __init__(self) -> None:
        self.rows: list[PasskeyCredential] = []

    async def list_all(self) -> list[PasskeyCredential]:
        return list(self.rows)

    async def count(self) -> int:
        return len(self.rows)

    async def get_by_credential_id(self, credential_id: bytes) -> PasskeyCredential | None:
        return next((row for row in self.rows if row.credential_id == credential_id), None)

    async def add(self, *, credential_id, public_key, sign_count, transports, device_type,
                  backed_up, device_label) -> PasskeyCredential:
        row = PasskeyCredential(
            id=uuid4(),
            credential_id=credential_id,
            public_key=normalize_public_key(public_key),
            sign_count=sign_count,
            transports=transports,
            device_type=device_type,
            backed_up=backed_up,
            device_label=device_label,
            created_at=datetime.now(UTC),
            last_used_at=None,
            flagged_at=None,
        )
        self.rows.append(row)
        return row

    async def update_sign_count(self, id: UUID, sign_count: int) -> None:
        row = self._by_id(id)
        row.sign_count = sign_count
        row.last_used_at = datetime.now(UTC)

    async def flag_for_review(self, id: UUID) -> None:
        self._by_id(id).flagged_at = datetime.now(UTC)

    async def delete_by_credential_id(self, credential_id: bytes) -> bool:
        row = await self.get_by_credential_id(credential_id)
        if row is None:
            return False
        self.rows.remove(row)
        return True

    def _by_id(self, id: UUID) -> PasskeyCredential:
        return next(row for row in self.rows if row.id == id)


class FakeAdminRecordRepository:
    def __init__(self, pin_hash: str | None = None) -> None:
        self.pin_hash = pin_hash

    async def get_pin_hash(self) -> str | None:
        return self.pin_hash


class RecordingEmailSender:
    """EmailSender that keeps messages instead of sending them."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.fail = False

    async def send(self, recipient: str, subject: str, body: str, **params: str) -> None:
        if self.fail:
            raise DeliveryFailedError()
        self.messages.append(
            {"recipient": recipient, "subject": subject, "body": body, **params}
        )


class SoftAuthenticator:
    """
    Platform authenticator in software.

    Produces "none" attestation registrations and ES256 assertions that
    py_webauthn verifies for real.
    """

    def __init__(self, rp_id: str = RP_ID, origin: str = ORIGIN):
        self.rp_id = rp_id
        self.origin = origin
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.credential_id = os.urandom(16)
        self.sign_count = 0

    @property
    def credential_id_b64(self) -> str:
        return bytes_to_base64url(self.credential_id)

    def cose_public_key(self) -> bytes:
        numbers = self.private_key.public_key().public_numbers()
        return cbor2.dumps(
            {
                1: 2,  # kty: EC2
                3: -7,  # alg: ES256
                -1: 1,  # crv: P-256
                -2: numbers.x.to_bytes(32, "big"),
                -3: numbers.y.to_bytes(32, "big"),
            }
        )

    def _client_data(self, ceremony: str, challenge: str, origin: str | None) -> bytes:
        return json.dumps(
            {
                "type": ceremony,
                "challenge": challenge,
                "origin": origin or self.origin,
                "crossOrigin": False,
            }
        ).encode()

    def _authenticator_data(
        self, flags: int, counter: int, rp_id: str | None, attested: bytes = b""
    ) -> bytes:
        rp_id_hash = hashlib.sha256((rp_id or self.rp_id).encode()).digest()
        return rp_id_hash + bytes([flags]) + counter.to_bytes(4, "big") + attested

    def register(
        self, options: dict[str, Any], origin: str | None = None, rp_id: str | None = None
    ) -> dict[str, Any]:
        attested = (
            bytes(16)
            + len(self.credential_id).to_bytes(2, "big")
            + self.credential_id
            + self.cose_public_key()
        )
        # UP | UV | AT
        auth_data = self._authenticator_data(0x45, self.sign_count, rp_id, attested)
        attestation_object = cbor2.dumps({"fmt": "none", "attStmt": {}, "authData": auth_data})
        client_data = self._client_data("webauthn.create", options["challenge"], origin)

        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes_to_base64url(client_data),
                "attestationObject": bytes_to_base64url(attestation_object),
                "transports": ["internal"],
            },
            "authenticatorAttachment": "platform",
            "clientExtensionResults": {},
        }

    def authenticate(
        self,
        options: dict[str, Any],
        counter: int | None = None,
        origin: str | None = None,
        rp_id: str | None = None,
    ) -> dict[str, Any]:
        if counter is None:
            self.sign_count += 1
            counter = self.sign_count

        # UP | UV
        auth_data = self._authenticator_data(0x05, counter, rp_id)
        client_data = self._client_data("webauthn.get", options["challenge"], origin)
        signature = self.private_key.sign(
            auth_data + hashlib.sha256(client_data).digest(), ec.ECDSA(hashes.SHA256())
        )

        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes_to_base64url(client_data),
                "authenticatorData": bytes_to_base64url(auth_data),
                "signature": bytes_to_base64url(signature),
                "userHandle": bytes_to_base64url(b"portfolio-admin"),
            },
            "authenticatorAttachment": "platform",
            "clientExtensionResults": {},
        }


# ==================== FIXTURES ====================

@pytest.fixture(autouse=True)
def reset_shared_state():
    """Drop cached settings, the shared store and the engine after each test."""
    yield
    reset_store()
    reset_db_state()
    clear_settings_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def credentials() -> FakeCredentialRepository:
    return FakeCredentialRepository()


@pytest.fixture
def admin_records() -> FakeAdminRecordRepository:
    return FakeAdminRecordRepository()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def authenticator() -> SoftAuthenticator:
    return SoftAuthenticator()


@pytest.fixture
def make_authenticator():
    """Factory for additional authenticators (distinct keys and IDs)."""
    return SoftAuthenticator


@pytest.fixture
def make_login_service(store, credentials, admin_records, email_sender, clock, settings):
    """Factory for AdminLoginService with optional settings overrides."""

    def _make(**overrides: Any) -> AdminLoginService:
        return AdminLoginService(
            settings=settings.model_copy(update=overrides) if overrides else settings,
            store=store,
            credentials=credentials,
            admin_records=admin_records,
            email_sender=email_sender,
            clock=clock,
        )

    return _make


@pytest.fixture
def login_service(make_login_service) -> AdminLoginService:
    return make_login_service()


# ==================== MARKERS ====================


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external services)")
    config.addinivalue_line("markers", "integration: Route tests through the ASGI app")
