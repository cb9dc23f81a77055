"""Base64 helpers shared by the JOSE and HTTP signature code."""

from __future__ import annotations

import base64
import binascii


def b64url_encode(data: bytes) -> str:
    """Base64url (RFC 4648 section 5) without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    """Decode base64url with or without padding. Raises ValueError on bad input."""
    pad = 4 - len(value) % 4
    if pad != 4:
        value += "=" * pad
    try:
        return base64.urlsafe_b64decode(value.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"invalid base64url data: {exc}") from exc


def b64_encode(data: bytes) -> str:
    """Standard base64 with padding, as used for structured-field byte sequences."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(value: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"invalid base64 data: {exc}") from exc
