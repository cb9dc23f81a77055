"""JWT claim sets for signed credentials.

A credential document is wrapped, unmodified, under ``vc`` and the outer
registered claims are derived from it:

    iss  <- issuer override, else credential.issuerDid
    sub  <- subject override, else credential.subjectDid
            (Agent only: else did:agent:{agentId})
    jti  <- credential.credentialId
    nbf  <- issuance date, iat = nbf
    exp  <- expiration date
    aud  <- audience option (omitted when empty)
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from beltic.credentials.kinds import CredentialKind
from beltic.crypto.encoding import b64url_decode
from beltic.errors import ClaimValidationError

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
NIL_UUID = "00000000-0000-0000-0000-000000000000"

_UUID_RE = re.compile(UUID_PATTERN)

# RFC 3339 section 5.6 date-time: full seconds and a mandatory offset.
_RFC3339_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$",
    re.ASCII,
)

Audience = Union[str, list[str]]


def _require_exp_after_nbf(nbf: int, exp: int) -> None:
    if exp <= nbf:
        raise ClaimValidationError(
            "exp",
            f"expiration must be greater than issuance ({exp} <= {nbf})",
            details={"exp": exp, "nbf": nbf},
        )


class ClaimsOptions(BaseModel):
    """Caller-supplied overrides for claim building."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    issuer: str | None = Field(default=None, description="Overrides credential.issuerDid.")
    subject: str | None = Field(default=None, description="Overrides credential.subjectDid.")
    audience: list[str] = Field(
        default_factory=list,
        description="Intended verifiers; one value is emitted as a bare string.",
    )


class ClaimSet(BaseModel):
    """Outer JWT claims of a signed credential."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    iss: str = Field(..., min_length=1)
    sub: str = Field(..., min_length=1)
    jti: str = Field(..., pattern=UUID_PATTERN)
    nbf: int
    exp: int
    iat: int
    aud: Audience | None = None
    vc: dict[str, Any]

    @model_validator(mode="after")
    def _check_window(self) -> ClaimSet:
        # Not a ValueError, so pydantic lets it through unwrapped.
        _require_exp_after_nbf(self.nbf, self.exp)
        return self

    def to_claims(self) -> dict[str, Any]:
        """JWT payload dict; ``aud`` only when present."""
        claims: dict[str, Any] = {
            "iss": self.iss,
            "sub": self.sub,
            "jti": self.jti,
            "nbf": self.nbf,
            "exp": self.exp,
            "iat": self.iat,
            "vc": self.vc,
        }
        if self.aud is not None:
            claims["aud"] = self.aud
        return claims


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and _UUID_RE.match(value) is not None


def _string_field(credential: Mapping[str, Any], name: str) -> str:
    value = credential.get(name)
    if not isinstance(value, str) or not value:
        raise ClaimValidationError(name, f"missing or invalid '{name}' field")
    return value


def parse_rfc3339_seconds(credential: Mapping[str, Any], name: str) -> int:
    """Unix seconds of an RFC 3339 date-time field; a UTC offset is required."""
    raw = _string_field(credential, name).strip()
    match = _RFC3339_RE.match(raw)
    if match is None:
        raise ClaimValidationError(
            name, f"invalid {name} (expecting RFC3339 date-time with offset): {raw}"
        )
    date, time, fraction, offset = match.groups()
    if offset in ("Z", "z"):
        offset = "+00:00"
    # Sub-second precision is dropped from the claim anyway.
    micros = f".{fraction[:6].ljust(6, '0')}" if fraction else ""
    try:
        parsed = datetime.fromisoformat(f"{date}T{time}{micros}{offset}")
    except ValueError as exc:
        raise ClaimValidationError(
            name, f"invalid {name} (expecting RFC3339 date-time): {raw}"
        ) from exc
    return int(parsed.timestamp())


def _credential_jti(credential: Mapping[str, Any], kind: CredentialKind) -> str:
    value = credential.get("credentialId")
    if value is None and kind is CredentialKind.DEVELOPER:
        fallback = credential.get("developerCredentialId")
        if fallback != NIL_UUID:
            value = fallback
    if value is None:
        raise ClaimValidationError("jti", "missing or invalid 'credentialId' field")
    if not is_uuid(value):
        raise ClaimValidationError("jti", f"credentialId must be a UUID, got {value!r}")
    return str(value)


def _subject(credential: Mapping[str, Any], kind: CredentialKind, override: str | None) -> str:
    if override:
        return override
    subject = credential.get("subjectDid")
    if isinstance(subject, str) and subject:
        return subject
    if kind is CredentialKind.AGENT:
        agent_id = credential.get("agentId")
        return f"did:agent:{agent_id if isinstance(agent_id, str) and agent_id else 'unknown'}"
    raise ClaimValidationError(
        "sub",
        "subject DID is required (pass a subject or include subjectDid in the credential)",
    )


def _audience(values: Sequence[str]) -> Audience | None:
    audience = [value for value in values if value]
    if not audience:
        return None
    if len(audience) == 1:
        return audience[0]
    return audience


def build_claims(
    credential: Mapping[str, Any],
    kind: CredentialKind,
    options: ClaimsOptions | None = None,
) -> ClaimSet:
    """Build the outer claim set for ``credential``.

    Raises:
        ClaimValidationError: A required field is missing or malformed, or
            the expiration is not after the issuance.
    """
    options = options or ClaimsOptions()
    issuer = options.issuer or _string_field(credential, "issuerDid")
    subject = _subject(credential, kind, options.subject)
    jti = _credential_jti(credential, kind)
    nbf = parse_rfc3339_seconds(credential, kind.issuance_field)
    exp = parse_rfc3339_seconds(credential, kind.expiration_field)
    _require_exp_after_nbf(nbf, exp)

    return ClaimSet(
        iss=issuer,
        sub=subject,
        jti=jti,
        nbf=nbf,
        exp=exp,
        iat=nbf,
        aud=_audience(options.audience),
        vc=dict(credential),
    )


def _looks_like_jwt(content: str) -> bool:
    return content.count(".") == 2 and "{" not in content


def extract_credential_id(document: str | Mapping[str, Any]) -> str:
    """Credential ID from a credential document or a compact JWT.

    For a JWT, ``jti`` wins over ``vc.credentialId``. For a document,
    ``credentialId`` wins over a non-nil ``developerCredentialId``.

    Raises:
        ValueError: Nothing identifies the credential.
    """
    if isinstance(document, str):
        content = document.strip()
        if _looks_like_jwt(content):
            try:
                payload = json.loads(b64url_decode(content.split(".")[1]))
            except (ValueError, UnicodeDecodeError) as exc:
                raise ValueError(f"failed to decode JWT payload: {exc}") from exc
            if not isinstance(payload, dict):
                raise ValueError("JWT payload is not a JSON object")
            jti = payload.get("jti")
            if isinstance(jti, str) and jti:
                return jti
            vc = payload.get("vc")
            if isinstance(vc, dict) and isinstance(vc.get("credentialId"), str):
                return str(vc["credentialId"])
            raise ValueError("No credentialId found in JWT")
        try:
            document = json.loads(content)
        except ValueError as exc:
            raise ValueError(f"Invalid JSON: {exc}") from exc
        if not isinstance(document, Mapping):
            raise ValueError("credential is not a JSON object")

    credential_id = document.get("credentialId")
    if isinstance(credential_id, str) and credential_id:
        return credential_id
    developer_id = document.get("developerCredentialId")
    if isinstance(developer_id, str) and developer_id and developer_id != NIL_UUID:
        return developer_id
    raise ValueError("No credentialId found in JSON")
