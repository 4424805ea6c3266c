"""Unit tests for stored public key normalization."""

import pytest
from webauthn.helpers import bytes_to_base64url

from portfolio_api.core.public_key import normalize_public_key

KEY = bytes([0xA5, 0x01, 0x02, 0x03, 0x26, 0x20, 0x01])


@pytest.mark.unit
class TestNormalizePublicKey:
    """Tests for normalize_public_key."""

    @pytest.mark.parametrize(
        "value",
        [
            KEY,
            bytearray(KEY),
            memoryview(KEY),
            {"type": "Buffer", "data": list(KEY)},
            list(KEY),
            bytes_to_base64url(KEY),
        ],
        ids=["bytes", "bytearray", "memoryview", "buffer-json", "int-list", "base64url"],
    )
    def test_known_forms(self, value):
        assert normalize_public_key(value) == KEY

    @pytest.mark.parametrize(
        "value",
        [None, b"", [], {}, {"type": "Buffer"}, [256, 1], ["a"], 42],
        ids=["none", "empty", "empty-list", "empty-dict", "no-data", "out-of-range", "strings", "int"],
    )
    def test_unreadable_forms_are_empty(self, value):
        assert normalize_public_key(value) == b""
