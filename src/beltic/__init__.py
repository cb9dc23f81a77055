"""Beltic signing core.

Signs and verifies agent and developer credentials as typed JWS tokens,
signs outgoing HTTP requests for Web Bot Auth, and publishes key
directories. Credential schemas are resolved from a local cache, the
canonical schema source, or the copies bundled with the package.

Example:
    >>> from beltic import sign_credential, verify_credential
    >>> signed = sign_credential(credential, "private.pem", alg="EdDSA")
    >>> verified = verify_credential(signed.token, "public.pem")
    >>> verified.is_valid
    True
"""

__version__ = "0.3.0"

from beltic.credentials import (
    ClaimSet,
    ClaimsOptions,
    CredentialKind,
    build_claims,
    detect_credential_kind,
    sign_credential,
    validate_credential,
    verify_credential,
)
from beltic.crypto import SignatureAlgorithm, sign_jws, thumbprint, verify_jws
from beltic.errors import BelticError
from beltic.httpsig import (
    HttpRequest,
    KeyDirectory,
    generate_key_directory,
    sign_key_directory,
    sign_request,
    verify_request,
)
from beltic.schemas import SchemaResolver, resolve_schema

__all__ = [
    "__version__",
    "BelticError",
    "ClaimSet",
    "ClaimsOptions",
    "CredentialKind",
    "HttpRequest",
    "KeyDirectory",
    "SchemaResolver",
    "SignatureAlgorithm",
    "build_claims",
    "detect_credential_kind",
    "generate_key_directory",
    "resolve_schema",
    "sign_credential",
    "sign_jws",
    "sign_key_directory",
    "sign_request",
    "thumbprint",
    "validate_credential",
    "verify_credential",
    "verify_jws",
    "verify_request",
]
