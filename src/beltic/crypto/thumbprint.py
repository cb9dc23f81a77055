"""JWK thumbprints (RFC 7638) used as JOSE ``kid`` and HTTP signature ``keyid``.

The thumbprint is the base64url SHA-256 of the JWK's required members,
serialized with JCS (RFC 8785) so member order and whitespace are fixed.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import cast

import jcs

from beltic.crypto.encoding import b64url_encode
from beltic.errors import KeyFormatError

ED25519_PUBLIC_KEY_LENGTH = 32

# Required members per key type (RFC 7638 section 3.2).
_REQUIRED_MEMBERS: dict[str, tuple[str, ...]] = {
    "OKP": ("crv", "kty", "x"),
    "EC": ("crv", "kty", "x", "y"),
}


def jwk_thumbprint(jwk: Mapping[str, object]) -> str:
    """Thumbprint of a public JWK; extra members (kid, alg, d, ...) are ignored."""
    kty = jwk.get("kty")
    if not isinstance(kty, str) or kty not in _REQUIRED_MEMBERS:
        raise KeyFormatError(
            f"Unsupported kty for thumbprint: {kty!r}",
            details={"kty": kty},
        )
    members: dict[str, str] = {}
    for name in _REQUIRED_MEMBERS[kty]:
        value = jwk.get(name)
        if not isinstance(value, str) or not value:
            raise KeyFormatError(
                f"JWK is missing required member '{name}' for kty {kty}",
                details={"kty": kty, "member": name},
            )
        members[name] = value
    canonical = cast(bytes, jcs.canonicalize(members))
    return b64url_encode(hashlib.sha256(canonical).digest())


def thumbprint_from_x(x: str) -> str:
    """Thumbprint of an Ed25519 key given its base64url ``x`` coordinate."""
    return jwk_thumbprint({"kty": "OKP", "crv": "Ed25519", "x": x})


def thumbprint(public_key_bytes: bytes) -> str:
    """Thumbprint of a raw 32-byte Ed25519 public key."""
    if len(public_key_bytes) != ED25519_PUBLIC_KEY_LENGTH:
        raise KeyFormatError(
            f"Ed25519 public key must be {ED25519_PUBLIC_KEY_LENGTH} bytes, "
            f"got {len(public_key_bytes)}",
            details={"length": len(public_key_bytes)},
        )
    return thumbprint_from_x(b64url_encode(public_key_bytes))
