"""Shared pytest fixtures for Beltic tests.

Every test gets its own schema cache directory through BELTIC_CACHE_DIR, so
nothing reads or writes the user's cache. Library tests that validate
credentials use ``offline_resolver``, which serves the embedded schemas.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import pytest

from beltic.config import ENV_CACHE_DIR, ENV_SCHEMA_BASE_URL, ENV_SCHEMA_TIMEOUT
from beltic.schemas import SchemaCache, SchemaResolver
from tests.factories import (
    ED25519_PRIVATE_PEM,
    ED25519_PUBLIC_PEM,
    ES256_PRIVATE_PEM,
    ES256_PUBLIC_PEM,
    TEST_SCHEMA_BASE_URL,
    create_agent_credential,
    create_developer_credential,
    unavailable_handler,
    write_key_pair,
)


@pytest.fixture(autouse=True)
def schema_cache_dir(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Per-test default cache directory and a short fetch timeout."""
    cache_dir = tmp_path_factory.mktemp("schema-cache")
    monkeypatch.setenv(ENV_CACHE_DIR, str(cache_dir))
    monkeypatch.setenv(ENV_SCHEMA_BASE_URL, TEST_SCHEMA_BASE_URL)
    monkeypatch.setenv(ENV_SCHEMA_TIMEOUT, "2")
    return cache_dir


@pytest.fixture
def ed25519_keys(tmp_path: Path) -> tuple[Path, Path]:
    """(private, public) PEM paths for the Ed25519 test vector."""
    return write_key_pair(tmp_path, ED25519_PRIVATE_PEM, ED25519_PUBLIC_PEM, "ed25519")


@pytest.fixture
def es256_keys(tmp_path: Path) -> tuple[Path, Path]:
    """(private, public) PEM paths for the P-256 test vector."""
    return write_key_pair(tmp_path, ES256_PRIVATE_PEM, ES256_PUBLIC_PEM, "es256")


@pytest.fixture
def offline_resolver(tmp_path: Path) -> SchemaResolver:
    """Resolver whose schema source is unreachable, so it serves embedded schemas."""
    return SchemaResolver(
        SchemaCache(tmp_path / "offline-cache"),
        base_url=TEST_SCHEMA_BASE_URL,
        transport=httpx.MockTransport(unavailable_handler),
    )


@pytest.fixture
def agent_credential() -> dict[str, Any]:
    return create_agent_credential()


@pytest.fixture
def developer_credential() -> dict[str, Any]:
    return create_developer_credential()
