"""On-disk schema cache: one JSON file per credential kind, mtime as freshness."""

from __future__ import annotations

import json
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from beltic.config import SCHEMA_CACHE_TTL_SECONDS, get_cache_dir
from beltic.observability import get_logger
from beltic.utils.files import atomic_write_text

if TYPE_CHECKING:
    from beltic.credentials.kinds import CredentialKind

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheStatus:
    """Snapshot of one cache entry, as shown by ``beltic schema status``."""

    kind: str
    path: Path
    exists: bool
    valid: bool
    age_seconds: float | None = None


class SchemaCache:
    """Schema files under a single directory.

    Writes replace the file atomically, so a concurrent reader sees either
    the old or the new document.
    """

    def __init__(
        self,
        directory: str | Path | None = None,
        ttl_seconds: float = SCHEMA_CACHE_TTL_SECONDS,
    ) -> None:
        self.directory = Path(directory) if directory is not None else get_cache_dir()
        self.ttl_seconds = ttl_seconds

    def path_for(self, kind: CredentialKind) -> Path:
        return self.directory / kind.schema_file

    def age(self, kind: CredentialKind) -> float | None:
        """Seconds since the entry was written, or None when there is none."""
        try:
            mtime = self.path_for(kind).stat().st_mtime
        except OSError:
            return None
        return max(0.0, time.time() - mtime)

    def is_fresh(self, kind: CredentialKind) -> bool:
        age = self.age(kind)
        return age is not None and age < self.ttl_seconds

    def _read(self, kind: CredentialKind) -> dict[str, Any] | None:
        path = self.path_for(kind)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("beltic.schema.cache_unreadable", path=str(path), error=str(exc))
            return None
        if not isinstance(data, dict):
            logger.warning("beltic.schema.cache_unreadable", path=str(path), error="not an object")
            return None
        return data

    def read_fresh(self, kind: CredentialKind) -> dict[str, Any] | None:
        if not self.is_fresh(kind):
            return None
        return self._read(kind)

    def read_stale(self, kind: CredentialKind) -> dict[str, Any] | None:
        """The cached document regardless of its age."""
        return self._read(kind)

    def write(self, kind: CredentialKind, schema: dict[str, Any]) -> Path:
        """Atomically replace the entry for ``kind``. Raises OSError on failure."""
        target = atomic_write_text(self.path_for(kind), json.dumps(schema, indent=2))
        logger.debug("beltic.schema.cached", kind=kind.value, path=str(target))
        return target

    def clear(self) -> bool:
        """Remove the cache directory. Returns False when there was nothing to remove."""
        if not self.directory.exists():
            return False
        shutil.rmtree(self.directory)
        logger.info("beltic.schema.cache_cleared", path=str(self.directory))
        return True

    def status(self, kind: CredentialKind) -> CacheStatus:
        path = self.path_for(kind)
        age = self.age(kind)
        return CacheStatus(
            kind=kind.display_name,
            path=path,
            exists=age is not None,
            valid=age is not None and age < self.ttl_seconds,
            age_seconds=age,
        )
