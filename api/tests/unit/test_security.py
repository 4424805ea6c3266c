"""
Unit tests for security utilities.

Tests PIN hashing, constant-time comparison, tokens and the admin session JWT.
"""

from datetime import timedelta


class TestPinHashing:
    """Tests for PIN hashing functions."""

    def test_pin_hash_and_verify(self):
        """Test that PIN hashing and verification works."""
        from portfolio_api.core.security import hash_pin, verify_pin

        hashed = hash_pin("842091")

        # Hash should be different from the PIN
        assert hashed != "842091"

        assert verify_pin("842091", hashed) is True
        assert verify_pin("842092", hashed) is False

    def test_same_pin_produces_different_hashes(self):
        """Test that the same PIN produces different hashes (due to salt)."""
        from portfolio_api.core.security import hash_pin

        assert hash_pin("842091") != hash_pin("842091")

    def test_overlong_pin_never_verifies(self):
        """Test that input past bcrypt's 72-byte limit is rejected outright."""
        from portfolio_api.core.security import hash_pin, verify_pin

        hashed = hash_pin("a" * 72)

        assert verify_pin("a" * 73, hashed) is False


class TestComparisonAndTokens:
    """Tests for constant-time comparison and opaque tokens."""

    def test_constant_time_equals(self):
        """Test string comparison results."""
        from portfolio_api.core.security import constant_time_equals

        assert constant_time_equals("842091", "842091") is True
        assert constant_time_equals("842091", "842090") is False
        assert constant_time_equals("842091", "") is False

    def test_generate_token_is_unique(self):
        """Test that generated tokens are random and URL-safe."""
        from portfolio_api.core.security import generate_token

        tokens = {generate_token() for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(t) == 43 for t in tokens)


class TestAdminSessionToken:
    """Tests for the admin session JWT."""

    def test_create_and_decode(self):
        """Test session token creation and decoding."""
        from portfolio_api.core.security import (
            create_admin_session_token,
            decode_admin_session_token,
        )

        token, expires_at = create_admin_session_token("admin", "passkey")
        payload = decode_admin_session_token(token)

        assert payload is not None
        assert payload["sub"] == "admin"
        assert payload["type"] == "admin_session"
        assert payload["amr"] == ["pin", "passkey", "human_check"]
        assert payload["exp"] == int(expires_at.timestamp())

    def test_expired_token_rejected(self):
        """Test that an expired session token does not decode."""
        from portfolio_api.core.security import (
            create_admin_session_token,
            decode_admin_session_token,
        )

        token, _ = create_admin_session_token(
            "admin", "passkey", expires_delta=timedelta(seconds=-1)
        )

        assert decode_admin_session_token(token) is None

    def test_tampered_token_rejected(self):
        """Test that a modified token fails signature validation."""
        from portfolio_api.core.security import (
            create_admin_session_token,
            decode_admin_session_token,
        )

        token, _ = create_admin_session_token("admin", "one_time_code")

        assert decode_admin_session_token(token[:-2] + "xx") is None

    def test_wrong_type_rejected(self):
        """Test that a JWT with another type claim is not a session."""
        import jwt

        from portfolio_api.config import get_settings
        from portfolio_api.core.security import decode_admin_session_token

        settings = get_settings()
        token = jwt.encode(
            {
                "sub": "admin",
                "type": "refresh",
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
            },
            settings.secret_key,
            algorithm=settings.algorithm,
        )

        assert decode_admin_session_token(token) is None

    def test_wrong_audience_rejected(self):
        """Test that a JWT for another audience is rejected."""
        import jwt

        from portfolio_api.config import get_settings
        from portfolio_api.core.security import decode_admin_session_token

        settings = get_settings()
        token = jwt.encode(
            {
                "sub": "admin",
                "type": "admin_session",
                "iss": settings.jwt_issuer,
                "aud": "someone-else",
            },
            settings.secret_key,
            algorithm=settings.algorithm,
        )

        assert decode_admin_session_token(token) is None
