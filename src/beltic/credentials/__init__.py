"""Credential types, claims and the sign/verify pipelines.

Public exports:
    CredentialKind: Agent or Developer, with their media types and field names
    build_claims: Derive the outer JWT claims from a credential document
    validate_credential: Schema violations as a sorted list
    sign_credential / verify_credential: End-to-end pipelines
"""

from beltic.credentials.claims import (
    ClaimSet,
    ClaimsOptions,
    build_claims,
    extract_credential_id,
)
from beltic.credentials.issuance import (
    SignedCredential,
    VerifiedCredential,
    sign_credential,
    verify_credential,
)
from beltic.credentials.kinds import (
    AGENT_TYP,
    CREDENTIAL_CTY,
    DEVELOPER_TYP,
    CredentialKind,
    credential_kind_from_typ,
    detect_credential_kind,
    parse_credential_kind,
    resolve_kind,
)
from beltic.credentials.validation import validate_credential

__all__ = [
    "AGENT_TYP",
    "CREDENTIAL_CTY",
    "DEVELOPER_TYP",
    "ClaimSet",
    "ClaimsOptions",
    "CredentialKind",
    "SignedCredential",
    "VerifiedCredential",
    "build_claims",
    "credential_kind_from_typ",
    "detect_credential_kind",
    "extract_credential_id",
    "parse_credential_kind",
    "resolve_kind",
    "sign_credential",
    "validate_credential",
    "verify_credential",
]
