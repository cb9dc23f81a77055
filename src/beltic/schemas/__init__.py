"""Credential schema resolution.

Keeps the JSON Schema for each credential kind available offline: a
per-user cache refreshed daily from the canonical source, with the
package's own copies as the last resort.
"""

from beltic.schemas.cache import CacheStatus, SchemaCache
from beltic.schemas.resolver import (
    ResolvedSchema,
    SchemaResolver,
    SchemaSource,
    compile_validator,
    load_embedded_schema,
    resolve_schema,
)

__all__ = [
    "CacheStatus",
    "ResolvedSchema",
    "SchemaCache",
    "SchemaResolver",
    "SchemaSource",
    "compile_validator",
    "load_embedded_schema",
    "resolve_schema",
]
