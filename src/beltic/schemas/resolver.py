"""Schema resolution with cache, network and embedded fallbacks.

Resolution order for a credential kind, first success wins:

1. a cache entry younger than the TTL;
2. the canonical schema source over HTTPS, written back to the cache;
3. a stale cache entry, with a warning;
4. the schema shipped inside the package, with a warning.

Resolution never fails. ``refresh`` is the only path that surfaces a fetch
error to the caller.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from threading import Lock
from typing import TYPE_CHECKING, Any, Optional

import httpx
from jsonschema.exceptions import SchemaError
from jsonschema.protocols import Validator
from jsonschema.validators import Draft202012Validator, validator_for

from beltic import __version__
from beltic.config import get_schema_base_url, get_schema_timeout
from beltic.errors import SchemaFetchError
from beltic.observability import get_logger
from beltic.schemas.cache import CacheStatus, SchemaCache
from beltic.utils.sanitization import sanitize_url

if TYPE_CHECKING:
    from beltic.credentials.kinds import CredentialKind

logger = get_logger(__name__)

USER_AGENT = f"beltic-cli/{__version__}"


class SchemaSource(str, Enum):
    """Where a resolved schema came from."""

    CACHE = "cache"
    NETWORK = "network"
    STALE_CACHE = "stale-cache"
    EMBEDDED = "embedded"


@dataclass(frozen=True)
class ResolvedSchema:
    kind: CredentialKind
    schema: dict[str, Any] = field(repr=False)
    source: SchemaSource
    validator: Validator = field(repr=False, compare=False)
    warning: str | None = None


def compile_validator(schema: dict[str, Any]) -> Validator:
    """Validator for the draft named by ``$schema`` (2020-12 when absent), checking formats."""
    cls = validator_for(schema, default=Draft202012Validator)
    return cls(schema, format_checker=cls.FORMAT_CHECKER)


def check_schema(schema: Any) -> None:
    """Raise SchemaError unless ``schema`` is a JSON object valid for its draft."""
    if not isinstance(schema, dict):
        raise SchemaError("schema is not a JSON object")
    validator_for(schema, default=Draft202012Validator).check_schema(schema)


def load_embedded_schema(kind: CredentialKind) -> dict[str, Any]:
    """The schema bundled with the package for ``kind``."""
    resource = resources.files("beltic.schemas").joinpath("data", kind.schema_file)
    data: dict[str, Any] = json.loads(resource.read_text(encoding="utf-8"))
    return data


class SchemaResolver:
    """Resolves and memoizes credential schemas.

    Each instance keeps its own memo of resolved schemas and compiled
    validators; nothing is shared between instances.

    Args:
        cache: Cache to read and write; defaults to the configured directory.
        base_url: Canonical schema source; defaults to BELTIC_SCHEMA_BASE_URL.
        timeout: Fetch timeout in seconds; defaults to BELTIC_SCHEMA_TIMEOUT.
        transport: Optional httpx transport for testing.
    """

    def __init__(
        self,
        cache: Optional[SchemaCache] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.cache = cache if cache is not None else SchemaCache()
        self.base_url = (base_url or get_schema_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_schema_timeout()
        self._transport = transport
        self._resolved: dict[CredentialKind, ResolvedSchema] = {}
        self._lock = Lock()

    def url_for(self, kind: CredentialKind) -> str:
        return f"{self.base_url}/{kind.schema_path}"

    def fetch(self, kind: CredentialKind) -> dict[str, Any]:
        """Download the schema for ``kind``. Raises SchemaFetchError on any failure."""
        url = self.url_for(kind)
        kwargs: dict[str, Any] = {
            "timeout": httpx.Timeout(self.timeout),
            "headers": {"User-Agent": USER_AGENT},
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport

        try:
            with httpx.Client(**kwargs) as client:
                resp = client.get(url)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise SchemaFetchError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise SchemaFetchError(url, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise SchemaFetchError(url, f"invalid JSON: {exc}") from exc

        try:
            check_schema(data)
        except SchemaError as exc:
            raise SchemaFetchError(url, f"not a valid JSON Schema: {exc.message}") from exc

        logger.info("beltic.schema.fetched", kind=kind.value, url=sanitize_url(url))
        return data

    def _build(
        self,
        kind: CredentialKind,
        schema: dict[str, Any],
        source: SchemaSource,
        warning: str | None = None,
    ) -> ResolvedSchema:
        return ResolvedSchema(
            kind=kind,
            schema=schema,
            source=source,
            validator=compile_validator(schema),
            warning=warning,
        )

    def _usable(self, schema: dict[str, Any] | None) -> dict[str, Any] | None:
        if schema is None:
            return None
        try:
            check_schema(schema)
        except SchemaError:
            return None
        return schema

    def _resolve_uncached(self, kind: CredentialKind) -> ResolvedSchema:
        fresh = self._usable(self.cache.read_fresh(kind))
        if fresh is not None:
            logger.debug("beltic.schema.cache_hit", kind=kind.value)
            return self._build(kind, fresh, SchemaSource.CACHE)

        try:
            schema = self.fetch(kind)
        except SchemaFetchError as exc:
            logger.warning(
                "beltic.schema.fetch_failed",
                kind=kind.value,
                url=sanitize_url(exc.url),
                reason=exc.reason,
            )
            stale = self._usable(self.cache.read_stale(kind))
            if stale is not None:
                warning = (
                    f"Using stale cached {kind.display_name} schema "
                    f"(could not refresh: {exc.reason})"
                )
                logger.warning("beltic.schema.stale_cache_used", kind=kind.value)
                return self._build(kind, stale, SchemaSource.STALE_CACHE, warning)

            warning = (
                f"Using embedded {kind.display_name} schema "
                f"(could not fetch: {exc.reason})"
            )
            logger.warning("beltic.schema.embedded_used", kind=kind.value)
            return self._build(kind, load_embedded_schema(kind), SchemaSource.EMBEDDED, warning)

        try:
            self.cache.write(kind, schema)
        except OSError as exc:
            logger.warning("beltic.schema.cache_write_failed", kind=kind.value, error=str(exc))
        return self._build(kind, schema, SchemaSource.NETWORK)

    def resolve(self, kind: CredentialKind) -> ResolvedSchema:
        """Schema for ``kind``; resolved once per resolver instance."""
        with self._lock:
            resolved = self._resolved.get(kind)
            if resolved is None:
                resolved = self._resolve_uncached(kind)
                self._resolved[kind] = resolved
            return resolved

    def validator(self, kind: CredentialKind) -> Validator:
        return self.resolve(kind).validator

    def refresh(self, kind: CredentialKind) -> ResolvedSchema:
        """Force a network fetch and rewrite the cache.

        Raises:
            SchemaFetchError: The canonical source is unreachable or invalid.
            OSError: The cache entry could not be written.
        """
        schema = self.fetch(kind)
        self.cache.write(kind, schema)
        resolved = self._build(kind, schema, SchemaSource.NETWORK)
        with self._lock:
            self._resolved[kind] = resolved
        return resolved

    def clear(self) -> bool:
        """Delete the cache directory and forget memoized schemas."""
        with self._lock:
            self._resolved.clear()
        return self.cache.clear()

    def status(self, kind: CredentialKind) -> CacheStatus:
        return self.cache.status(kind)


def resolve_schema(
    kind: CredentialKind,
    *,
    resolver: Optional[SchemaResolver] = None,
) -> ResolvedSchema:
    """Resolve the schema for ``kind`` with ``resolver`` or a default one."""
    return (resolver or SchemaResolver()).resolve(kind)
