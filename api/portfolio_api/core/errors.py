"""
Authentication Errors

Domain exceptions raised by the admin login services. Each carries the
stable error code and HTTP status used by the exception handler registered
in main.py, so routers can let them propagate.
"""


class AuthFlowError(Exception):
    """Base class for admin authentication failures."""

    code = "auth_error"
    status_code = 400
    message = "Authentication failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidSecretError(AuthFlowError):
    """Wrong PIN, one-time code or human-check answer.

    Same message for every factor.
    """

    code = "invalid_secret"
    status_code = 401
    message = "Verification failed"


class LockedError(AuthFlowError):
    """Too many failures; every attempt is refused until the countdown ends."""

    code = "locked"
    status_code = 429
    message = "Too many failed attempts"

    def __init__(self, retry_after: int, message: str | None = None):
        super().__init__(message)
        self.retry_after = max(int(retry_after), 0)


class RateLimitedError(AuthFlowError):
    """Fixed-window attempt limit exceeded."""

    code = "rate_limited"
    status_code = 429
    message = "Too many requests"

    def __init__(self, retry_after: int, message: str | None = None):
        super().__init__(message)
        self.retry_after = max(int(retry_after), 0)


class ChallengeExpiredError(AuthFlowError):
    """Pending ceremony challenge is missing, expired or already consumed."""

    code = "challenge_expired"
    status_code = 400
    message = "Challenge not found or expired; restart the ceremony"


class OriginMismatchError(AuthFlowError):
    """Ceremony response claims an origin or relying party we do not serve."""

    code = "origin_mismatch"
    status_code = 400
    message = "Origin or relying party mismatch"


class ReplaySuspectedError(AuthFlowError):
    """Signature counter did not advance; possible cloned authenticator."""

    code = "replay_suspected"
    status_code = 401
    message = "Authenticator signature counter did not advance"


class CorruptedCredentialError(AuthFlowError):
    """Stored public key is unusable."""

    code = "corrupted_credential"
    status_code = 409
    message = "Stored passkey is corrupted; delete it and register it again"


class CeremonyFailedError(AuthFlowError):
    """Cryptographic verification of a ceremony response failed."""

    code = "verification_failed"
    status_code = 400
    message = "Passkey verification failed"


class NoCredentialsError(AuthFlowError):
    """Authentication ceremony requested while no passkeys are registered."""

    code = "none_registered"
    status_code = 404
    message = "No passkeys registered"


class UnauthorizedError(AuthFlowError):
    """Missing or expired bearer token on a gated operation."""

    code = "unauthorized"
    status_code = 401
    message = "Session expired. Please re-enter PIN."


class DeliveryFailedError(AuthFlowError):
    """The email collaborator could not deliver a message."""

    code = "delivery_failed"
    status_code = 502
    message = "Failed to send email"


class FlowStateError(AuthFlowError):
    """Step submitted out of order for the login flow."""

    code = "invalid_flow_state"
    status_code = 409
    message = "Login step not available; restart the login"
