"""Beltic Cryptographic Layer.

This module provides the signing primitives shared by credentials and HTTP
message signatures:
- Algorithm registry for ES256 (P-256) and EdDSA (Ed25519)
- Key loading with wipe-on-exit buffers, key generation and PEM output
- JWK thumbprints (RFC 7638) used as ``kid``/``keyid``
- Compact JWS signing and verification with the strict audience rule

Public exports:
    algorithms: Algorithm registry submodule
    keys: Key file I/O submodule
    jws: JWS engine submodule
"""

from beltic.crypto import algorithms
from beltic.crypto import jws
from beltic.crypto import keys
from beltic.crypto.algorithms import KeyMaterial, SignatureAlgorithm
from beltic.crypto.jws import (
    VerifiedToken,
    decode_unverified_claims,
    decode_unverified_header,
    sign_jws,
    verify_jws,
)
from beltic.crypto.keys import SecretBuffer, generate_key, load_private_key, load_public_key
from beltic.crypto.thumbprint import jwk_thumbprint, thumbprint, thumbprint_from_x

__all__ = [
    "algorithms",
    "jws",
    "keys",
    "KeyMaterial",
    "SecretBuffer",
    "SignatureAlgorithm",
    "VerifiedToken",
    "decode_unverified_claims",
    "decode_unverified_header",
    "generate_key",
    "jwk_thumbprint",
    "load_private_key",
    "load_public_key",
    "sign_jws",
    "thumbprint",
    "thumbprint_from_x",
    "verify_jws",
]
