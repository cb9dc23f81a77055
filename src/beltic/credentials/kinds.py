"""Credential kinds and how a kind is decided for a document or token."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from beltic.errors import TypeResolutionError

AGENT_TYP = "application/beltic-agent+jwt"
DEVELOPER_TYP = "application/beltic-developer+jwt"

# Content type of the embedded credential (JWS ``cty``).
CREDENTIAL_CTY = "application/json"


class CredentialKind(str, Enum):
    """The two credential families; each fixes its typ, field names and schema."""

    AGENT = "agent"
    DEVELOPER = "developer"

    def __str__(self) -> str:
        return self.value

    @property
    def media_type(self) -> str:
        if self is CredentialKind.AGENT:
            return AGENT_TYP
        return DEVELOPER_TYP

    @property
    def display_name(self) -> str:
        if self is CredentialKind.AGENT:
            return "AgentCredential"
        return "DeveloperCredential"

    @property
    def issuance_field(self) -> str:
        if self is CredentialKind.AGENT:
            return "credentialIssuanceDate"
        return "issuanceDate"

    @property
    def expiration_field(self) -> str:
        if self is CredentialKind.AGENT:
            return "credentialExpirationDate"
        return "expirationDate"

    @property
    def schema_file(self) -> str:
        """File name used both in the cache directory and for the embedded copy."""
        return f"{self.value}-credential-v1.schema.json"

    @property
    def schema_path(self) -> str:
        """Path of the schema below the canonical schema base URL."""
        return f"{self.value}/v1/{self.schema_file}"


def parse_credential_kind(value: str | CredentialKind) -> CredentialKind:
    """Parse "agent"/"AgentCredential"/"developer"/"DeveloperCredential" (any case)."""
    if isinstance(value, CredentialKind):
        return value
    normalized = value.strip().lower()
    if normalized in ("agent", "agentcredential"):
        return CredentialKind.AGENT
    if normalized in ("developer", "developercredential"):
        return CredentialKind.DEVELOPER
    raise TypeResolutionError(
        f"Unknown credential type '{value}'. Expected 'agent' or 'developer'.",
        signals={"explicit": value},
    )


def credential_kind_from_typ(typ: str | None) -> CredentialKind | None:
    if typ == AGENT_TYP:
        return CredentialKind.AGENT
    if typ == DEVELOPER_TYP:
        return CredentialKind.DEVELOPER
    return None


def detect_credential_kind(payload: Any) -> CredentialKind | None:
    """Guess the kind from a credential document's structure.

    A ``$schema`` URL wins; otherwise ``agentName``+``agentId`` means Agent
    and ``legalName``+``subjectDid`` means Developer.
    """
    if not isinstance(payload, Mapping):
        return None
    schema = payload.get("$schema")
    if isinstance(schema, str):
        if "/agent/" in schema:
            return CredentialKind.AGENT
        if "/developer/" in schema:
            return CredentialKind.DEVELOPER
    if "agentName" in payload and "agentId" in payload:
        return CredentialKind.AGENT
    if "legalName" in payload and "subjectDid" in payload:
        return CredentialKind.DEVELOPER
    return None


def resolve_kind(
    explicit: CredentialKind | None = None,
    header_typ: str | None = None,
    detected: CredentialKind | None = None,
) -> CredentialKind:
    """Combine the available signals into one kind.

    An explicit kind wins but must not contradict the header or detection.
    Without one, header and detection must agree. A ``typ`` that is not a
    credential media type is ignored.

    Raises:
        TypeResolutionError: On a conflict, or when there is no signal at all.
    """
    from_header = credential_kind_from_typ(header_typ)

    if explicit is not None:
        for source, signal in (("header", from_header), ("payload", detected)):
            if signal is not None and signal is not explicit:
                raise TypeResolutionError(
                    f"credential type mismatch: requested {explicit.display_name} "
                    f"but {source} indicates {signal.display_name}",
                    signals={"explicit": explicit.value, source: signal.value},
                )
        return explicit

    if from_header is not None and detected is not None:
        if from_header is not detected:
            raise TypeResolutionError(
                f"credential type mismatch: header indicates {from_header.display_name} "
                f"but payload looks like {detected.display_name}",
                signals={"header": from_header.value, "payload": detected.value},
            )
        return from_header

    kind = from_header or detected
    if kind is None:
        raise TypeResolutionError("unable to determine credential type")
    return kind
