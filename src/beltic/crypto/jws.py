"""Compact JWS signing and verification for credential tokens.

Signing and verification go through joserfc's JWS layer, restricted to the
single algorithm named in the header. Time claims are checked with a fixed
clock-skew leeway, and the audience rule follows RFC 7519 section 4.1.3:
a token carrying ``aud`` is rejected unless the verifier names itself in it.
"""

from __future__ import annotations

import json
import warnings
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from joserfc import jws
from joserfc.errors import BadSignatureError, ExpiredTokenError, InvalidTokenError, JoseError
from joserfc.jwt import JWTClaimsRegistry

from beltic.config import JWT_LEEWAY_SECONDS
from beltic.crypto.algorithms import SignatureAlgorithm, decode_public, detect_public_algorithm
from beltic.crypto.encoding import b64url_decode
from beltic.crypto.keys import load_private_key, read_pem
from beltic.errors import (
    ClaimValidationError,
    SignatureVerificationError,
    UnsupportedAlgorithmError,
)
from beltic.observability import get_logger

logger = get_logger(__name__)

# joserfc flags "EdDSA" as superseded by "Ed25519" (RFC 9864); credential
# headers must still carry "EdDSA".
_EDDSA_DEPRECATION = r".*EdDSA.*deprecated.*"


@dataclass(frozen=True)
class VerifiedToken:
    """Decoded header and payload plus the algorithm that actually verified."""

    header: dict[str, Any]
    payload: dict[str, Any] = field(repr=False)
    algorithm: SignatureAlgorithm

    @property
    def typ(self) -> str | None:
        value = self.header.get("typ")
        return value if isinstance(value, str) else None


def _split(token: str) -> list[str]:
    parts = token.strip().split(".")
    if len(parts) != 3:
        raise SignatureVerificationError(
            f"malformed JWS: expected 3 segments, got {len(parts)}",
            details={"segments": len(parts)},
        )
    return parts


def _decode_segment(segment: str, name: str) -> dict[str, Any]:
    try:
        value = json.loads(b64url_decode(segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise SignatureVerificationError(f"failed to decode JWS {name}: {exc}") from exc
    if not isinstance(value, dict):
        raise SignatureVerificationError(f"JWS {name} is not a JSON object")
    return value


def decode_unverified_header(token: str) -> dict[str, Any]:
    """Header of a compact JWS, without checking the signature."""
    return _decode_segment(_split(token)[0], "header")


def decode_unverified_claims(token: str) -> dict[str, Any]:
    """Payload of a compact JWS, without checking the signature."""
    return _decode_segment(_split(token)[1], "payload")


@contextmanager
def _quiet_eddsa_deprecation() -> Iterator[None]:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message=_EDDSA_DEPRECATION)
        yield


def _check_time_order(claims: Mapping[str, Any]) -> None:
    nbf = claims.get("nbf")
    exp = claims.get("exp")
    if isinstance(nbf, int) and isinstance(exp, int) and exp <= nbf:
        raise ClaimValidationError(
            "exp",
            f"expiration must be greater than issuance ({exp} <= {nbf})",
            details={"exp": exp, "nbf": nbf},
        )


def sign_jws(
    claims: Mapping[str, Any],
    key_path: str | Path,
    alg: SignatureAlgorithm | str,
    *,
    typ: str,
    kid: str | None = None,
    cty: str | None = None,
) -> str:
    """Sign ``claims`` as a compact JWS with the private key at ``key_path``.

    The header carries ``alg`` and ``typ`` plus ``cty``/``kid`` when given.
    ``claims`` is serialized as-is and never modified. Raises
    ClaimValidationError (before touching the key) when ``exp <= nbf``,
    and KeyFormatError when the key cannot be loaded for ``alg``.
    """
    alg = SignatureAlgorithm.parse(alg)
    _check_time_order(claims)

    header: dict[str, Any] = {"alg": alg.value, "typ": typ}
    if cty is not None:
        header["cty"] = cty
    if kid is not None:
        header["kid"] = kid
    payload = json.dumps(dict(claims), separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    material = load_private_key(key_path, alg)
    with _quiet_eddsa_deprecation():
        token = jws.serialize_compact(
            header, payload, material.to_jose_key(), algorithms=[alg.value]
        )
    logger.info("beltic.jws.signed", alg=alg.value, typ=typ, kid=kid)
    return token


def _check_times(claims: Mapping[str, Any]) -> None:
    registry = JWTClaimsRegistry(leeway=JWT_LEEWAY_SECONDS)
    try:
        registry.validate(dict(claims))
    except ExpiredTokenError as exc:
        raise ClaimValidationError("exp", "token has expired") from exc
    except InvalidTokenError as exc:
        raise ClaimValidationError("nbf", "token is not yet valid") from exc
    except JoseError as exc:
        claim = getattr(exc, "claim", None) or "claims"
        raise ClaimValidationError(claim, exc.description or str(exc)) from exc


def _normalize_expected(expected: Sequence[str] | str | None) -> list[str]:
    if expected is None:
        return []
    if isinstance(expected, str):
        return [expected] if expected else []
    return [value for value in expected if value]


def check_audience(claims: Mapping[str, Any], expected_audience: Sequence[str] | str | None) -> None:
    """Enforce RFC 7519 section 4.1.3.

    With an expected audience, the token's ``aud`` must contain one of its
    values. Without one, the token must not carry ``aud`` at all.
    """
    expected = _normalize_expected(expected_audience)
    if not expected:
        if "aud" in claims:
            raise ClaimValidationError(
                "aud",
                "token has an audience claim but no expected audience was provided; "
                "the verifier must identify itself with a value in the audience claim",
                details={"aud": claims.get("aud")},
            )
        return

    raw = claims.get("aud")
    if raw is None:
        raise ClaimValidationError(
            "aud",
            "token has no audience claim but an expected audience was provided",
            details={"expected": expected},
        )
    if isinstance(raw, str):
        token_audience = [raw]
    elif isinstance(raw, list) and all(isinstance(item, str) for item in raw):
        token_audience = raw
    else:
        raise ClaimValidationError("aud", "audience claim must be a string or list of strings")

    if not set(token_audience) & set(expected):
        raise ClaimValidationError(
            "aud",
            f"audience mismatch: token is for {token_audience}, expected one of {expected}",
            details={"aud": token_audience, "expected": expected},
        )


def verify_jws(
    token: str,
    key_path: str | Path,
    expected_audience: Sequence[str] | str | None = None,
) -> VerifiedToken:
    """Verify a compact JWS against the public key at ``key_path``.

    Steps, in order: read the claimed ``alg``; load the public key for that
    algorithm and verify the signature with it alone; check ``exp``/``nbf``
    with leeway; apply the audience rule.

    Raises:
        UnsupportedAlgorithmError: Unknown ``alg``, or a key of the other type.
        SignatureVerificationError: Malformed token or bad signature.
        ClaimValidationError: Expired, not yet valid, or audience failure.
        KeyFormatError: The public key cannot be read.
    """
    token = token.strip()
    header = decode_unverified_header(token)
    claimed = header.get("alg")
    if not isinstance(claimed, str):
        raise UnsupportedAlgorithmError(str(claimed), "JWS header has no usable 'alg'")
    # JOSE algorithm names are case-sensitive.
    try:
        alg = SignatureAlgorithm(claimed)
    except ValueError as exc:
        raise UnsupportedAlgorithmError(claimed) from exc

    pem = read_pem(key_path)
    key_alg = detect_public_algorithm(pem)
    if key_alg is not alg:
        raise UnsupportedAlgorithmError(
            alg.value,
            f"token algorithm {alg.value} does not match the {key_alg.value} public key",
            details={"key_algorithm": key_alg.value},
        )
    material = decode_public(pem, alg)

    try:
        with _quiet_eddsa_deprecation():
            compact = jws.deserialize_compact(
                token, material.to_jose_key(), algorithms=[alg.value]
            )
    except BadSignatureError as exc:
        raise SignatureVerificationError(
            f"signature verification failed for alg {alg.value}",
            details={"alg": alg.value},
        ) from exc
    except JoseError as exc:
        raise SignatureVerificationError(
            f"invalid JWS for alg {alg.value}: {exc}",
            details={"alg": alg.value},
        ) from exc

    try:
        payload = json.loads(compact.payload)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ClaimValidationError("payload", f"not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ClaimValidationError("payload", "JWT payload must be a JSON object")

    _check_times(payload)
    check_audience(payload, expected_audience)

    logger.info("beltic.jws.verified", alg=alg.value, typ=header.get("typ"))
    return VerifiedToken(header=dict(compact.protected), payload=payload, algorithm=alg)
