"""Beltic Error Taxonomy.

This module defines the error hierarchy for the Beltic signing core,
providing structured error handling with specific error codes and
context information. Each failure class a relying party needs to tell
apart (bad key, bad signature, bad claims, bad schema, unreachable
schema source, ambiguous credential type) has its own exception.
"""

from __future__ import annotations

from typing import Any


class BelticError(Exception):
    """Base exception for all Beltic errors.

    Attributes:
        code: Error code following the beltic:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class KeyFormatError(BelticError):
    """Raised when PEM key material is unreadable, malformed, or for the wrong algorithm.

    Always fatal to the call that loaded the key; never retried.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="beltic:key/format",
            message=message,
            details=details or {},
        )


class SignatureVerificationError(BelticError):
    """Tampering, wrong key, or invalid/corrupted signature; see message for cause."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        code: str = "beltic:signature/verification",
    ) -> None:
        super().__init__(code=code, message=message, details=details or {})


class UnsupportedAlgorithmError(SignatureVerificationError):
    """Raised when a claimed algorithm is unknown or does not match the key.

    Attributes:
        algorithm: The algorithm that was claimed or requested
        supported: Algorithms this package accepts
    """

    def __init__(
        self,
        algorithm: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        supported = ["ES256", "EdDSA"]
        super().__init__(
            message
            or f"Unsupported algorithm '{algorithm}'. Supported algorithms: {', '.join(supported)}",
            details={"algorithm": algorithm, "supported": supported, **(details or {})},
            code="beltic:signature/unsupported_algorithm",
        )
        self.algorithm = algorithm
        self.supported = supported


class ClaimValidationError(BelticError):
    """Raised when token or credential claims are missing, malformed, or out of bounds.

    Covers missing ``iss``/``sub``/``jti``, invalid timestamps, an expired or
    not-yet-valid token, and audience mismatches. The ``claim`` attribute
    names the claim so callers can tell "expired" from "wrong audience".

    Attributes:
        claim: Name of the offending claim (e.g. "exp", "aud")
        reason: Description of the failed check
    """

    def __init__(self, claim: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="beltic:claims/invalid",
            message=f"Invalid '{claim}' claim: {reason}",
            details={"claim": claim, "reason": reason, **(details or {})},
        )
        self.claim = claim
        self.reason = reason


class SchemaValidationError(BelticError):
    """Raised when a credential violates its schema and the caller asked for an exception.

    Validation itself returns the violations as a list; this error only
    carries that full list to callers of the signing pipeline.

    Attributes:
        kind: Display name of the credential kind that was validated
        errors: Every constraint violation, ``"<pointer>: <message>"``
    """

    def __init__(self, kind: str, errors: list[str], details: dict[str, Any] | None = None) -> None:
        summary = f"{kind} failed schema validation with {len(errors)} error(s)"
        super().__init__(
            code="beltic:schema/invalid",
            message=summary,
            details={"kind": kind, "errors": list(errors), **(details or {})},
        )
        self.kind = kind
        self.errors = list(errors)


class SchemaFetchError(BelticError):
    """Raised when a schema cannot be fetched from its canonical source.

    Only surfaced by an explicit refresh; ordinary resolution falls back to
    cached or embedded schemas instead.

    Attributes:
        url: The URL that was requested
        reason: Why the fetch failed
    """

    def __init__(self, url: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="beltic:schema/fetch_failed",
            message=f"Failed to fetch schema from {url}: {reason}",
            details={"url": url, "reason": reason, **(details or {})},
        )
        self.url = url
        self.reason = reason


class TypeResolutionError(BelticError):
    """Raised when the credential kind is missing, unknown, or signals disagree.

    Attributes:
        signals: The conflicting signal values, keyed by source
    """

    def __init__(self, message: str, signals: dict[str, str] | None = None) -> None:
        super().__init__(
            code="beltic:credential/type_resolution",
            message=message,
            details={"signals": dict(signals or {})},
        )
        self.signals = dict(signals or {})


class HttpSignatureError(BelticError):
    """Raised when an HTTP message signature cannot be built or does not verify."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="beltic:httpsig/invalid",
            message=message,
            details=details or {},
        )
