"""Schema validation of credential documents."""

from __future__ import annotations

from typing import Any, Optional

from jsonschema.exceptions import ValidationError

from beltic.credentials.kinds import CredentialKind
from beltic.schemas.resolver import SchemaResolver

ROOT_LOCATION = "<root>"


def _escape_pointer_token(token: Any) -> str:
    return str(token).replace("~", "~0").replace("/", "~1")


def error_location(error: ValidationError) -> str:
    """JSON Pointer of the offending instance, ``<root>`` for the document itself."""
    pointer = "".join(f"/{_escape_pointer_token(part)}" for part in error.absolute_path)
    return pointer or ROOT_LOCATION


def validate_credential(
    kind: CredentialKind,
    payload: Any,
    *,
    resolver: Optional[SchemaResolver] = None,
) -> list[str]:
    """Every schema violation in ``payload`` as ``"<location>: <message>"``.

    An empty list means the document is valid. Results are sorted by
    location so output is stable across runs.
    """
    validator = (resolver or SchemaResolver()).validator(kind)
    found = [(error_location(error), error.message) for error in validator.iter_errors(payload)]
    return [f"{location}: {message}" for location, message in sorted(found)]
