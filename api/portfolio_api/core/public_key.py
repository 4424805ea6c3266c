"""
Public key normalization.

Credential public keys have been persisted as raw bytes, as Node-style
Buffer JSON ({"type": "Buffer", "data": [...]}), as plain integer arrays and
as base64url strings. normalize_public_key collapses all of them to bytes
at the storage boundary so verification only ever sees one type.
"""

import binascii
from typing import Any

from webauthn.helpers import base64url_to_bytes


def normalize_public_key(value: Any) -> bytes:
    """
    Convert a stored public key to canonical bytes.

    Args:
        value: bytes-like, Buffer JSON dict, list of ints, or base64url string

    Returns:
        Key bytes; empty bytes when the value is missing or unreadable
    """
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, dict):
        return normalize_public_key(value.get("data"))
    if isinstance(value, (list, tuple)):
        try:
            return bytes(value)
        except (TypeError, ValueError):
            return b""
    if isinstance(value, str):
        try:
            return base64url_to_bytes(value)
        except (binascii.Error, ValueError):
            return b""
    return b""
