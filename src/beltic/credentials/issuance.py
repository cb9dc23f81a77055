"""Signing and verification pipelines for credential documents.

Signing: resolve kind -> schema-validate -> build claims -> JWS sign.
Verification: JWS verify -> resolve kind -> check claims -> schema-validate ``vc``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from beltic.credentials.claims import ClaimSet, ClaimsOptions, build_claims, is_uuid
from beltic.credentials.kinds import (
    CREDENTIAL_CTY,
    CredentialKind,
    detect_credential_kind,
    parse_credential_kind,
    resolve_kind,
)
from beltic.credentials.validation import validate_credential
from beltic.crypto.algorithms import SignatureAlgorithm
from beltic.crypto.jws import sign_jws, verify_jws
from beltic.crypto.keys import load_private_key
from beltic.errors import ClaimValidationError, SchemaValidationError
from beltic.observability import get_logger
from beltic.schemas.resolver import SchemaResolver

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignedCredential:
    token: str = field(repr=False)
    kind: CredentialKind
    algorithm: SignatureAlgorithm
    claims: ClaimSet = field(repr=False)
    kid: str | None = None
    schema_warning: str | None = None


@dataclass(frozen=True)
class VerifiedCredential:
    """A token whose signature, time window and audience checked out.

    ``errors`` holds schema violations of the embedded credential; a
    credential is only fully valid when that list is empty.
    """

    kind: CredentialKind
    algorithm: SignatureAlgorithm
    header: dict[str, Any]
    payload: dict[str, Any] = field(repr=False)
    errors: list[str] = field(default_factory=list)
    schema_warning: str | None = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def credential(self) -> dict[str, Any]:
        vc: dict[str, Any] = self.payload["vc"]
        return vc


def _explicit_kind(kind: CredentialKind | str | None) -> CredentialKind | None:
    if kind is None:
        return None
    return parse_credential_kind(kind)


def sign_credential(
    credential: Mapping[str, Any],
    key_path: str | Path,
    *,
    alg: SignatureAlgorithm | str = SignatureAlgorithm.EDDSA,
    kind: CredentialKind | str | None = None,
    options: ClaimsOptions | None = None,
    kid: str | None = None,
    resolver: Optional[SchemaResolver] = None,
    skip_validation: bool = False,
) -> SignedCredential:
    """Validate, wrap and sign a credential document.

    ``kid`` defaults to the JWK thumbprint of the signing key.

    Raises:
        TypeResolutionError: The kind is unknown or contradicted by the document.
        SchemaValidationError: The document violates its schema (all violations attached).
        ClaimValidationError: Claims cannot be derived from the document.
        KeyFormatError: The private key cannot be loaded for ``alg``.
    """
    alg = SignatureAlgorithm.parse(alg)
    resolved_kind = resolve_kind(_explicit_kind(kind), None, detect_credential_kind(credential))

    warning: str | None = None
    if not skip_validation:
        resolver = resolver or SchemaResolver()
        warning = resolver.resolve(resolved_kind).warning
        errors = validate_credential(resolved_kind, credential, resolver=resolver)
        if errors:
            raise SchemaValidationError(resolved_kind.display_name, errors)

    claims = build_claims(credential, resolved_kind, options)
    if kid is None:
        kid = load_private_key(key_path, alg).thumbprint()

    token = sign_jws(
        claims.to_claims(),
        key_path,
        alg,
        typ=resolved_kind.media_type,
        kid=kid,
        cty=CREDENTIAL_CTY,
    )
    logger.info(
        "beltic.credential.signed",
        kind=resolved_kind.value,
        jti=claims.jti,
        alg=alg.value,
        kid=kid,
    )
    return SignedCredential(
        token=token,
        kind=resolved_kind,
        algorithm=alg,
        claims=claims,
        kid=kid,
        schema_warning=warning,
    )


def _require_claims(payload: Mapping[str, Any]) -> dict[str, Any]:
    for name in ("iss", "sub"):
        value = payload.get(name)
        if not isinstance(value, str) or not value:
            raise ClaimValidationError(name, f"token is missing the '{name}' claim")
    if not is_uuid(payload.get("jti")):
        raise ClaimValidationError("jti", "token 'jti' must be a UUID")
    for name in ("nbf", "exp"):
        value = payload.get(name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ClaimValidationError(name, f"token '{name}' must be an integer timestamp")
    vc = payload.get("vc")
    if not isinstance(vc, dict):
        raise ClaimValidationError("vc", "token does not embed a credential object")
    return vc


def verify_credential(
    token: str,
    key_path: str | Path,
    *,
    expected_audience: Sequence[str] | str | None = None,
    kind: CredentialKind | str | None = None,
    resolver: Optional[SchemaResolver] = None,
    skip_validation: bool = False,
) -> VerifiedCredential:
    """Verify a credential token and schema-check the embedded document.

    Cryptographic, time and audience failures raise. Schema violations do
    not; they are returned on the result.
    """
    verified = verify_jws(token, key_path, expected_audience)
    vc = _require_claims(verified.payload)
    resolved_kind = resolve_kind(_explicit_kind(kind), verified.typ, detect_credential_kind(vc))

    errors: list[str] = []
    warning: str | None = None
    if not skip_validation:
        resolver = resolver or SchemaResolver()
        warning = resolver.resolve(resolved_kind).warning
        errors = validate_credential(resolved_kind, vc, resolver=resolver)

    logger.info(
        "beltic.credential.verified",
        kind=resolved_kind.value,
        jti=verified.payload.get("jti"),
        schema_errors=len(errors),
    )
    return VerifiedCredential(
        kind=resolved_kind,
        algorithm=verified.algorithm,
        header=verified.header,
        payload=verified.payload,
        errors=errors,
        schema_warning=warning,
    )
