"""Runtime settings read from the environment.

Environment Variables:
    BELTIC_CACHE_DIR: Directory holding cached credential schemas
    BELTIC_SCHEMA_BASE_URL: Base URL of the canonical schema source
    BELTIC_SCHEMA_TIMEOUT: Schema fetch timeout in seconds
"""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_cache_path

ENV_CACHE_DIR = "BELTIC_CACHE_DIR"
ENV_SCHEMA_BASE_URL = "BELTIC_SCHEMA_BASE_URL"
ENV_SCHEMA_TIMEOUT = "BELTIC_SCHEMA_TIMEOUT"

DEFAULT_SCHEMA_BASE_URL = "https://raw.githubusercontent.com/belticlabs/beltic-spec/main/schemas"
DEFAULT_SCHEMA_TIMEOUT_SECONDS = 30.0

# Cached schemas older than this are refetched before use.
SCHEMA_CACHE_TTL_SECONDS = 24 * 60 * 60

# Clock skew tolerated on both exp and nbf.
JWT_LEEWAY_SECONDS = 300

# Used for both the directory signature `expires` and Cache-Control max-age.
DIRECTORY_SIGNATURE_LIFETIME_SECONDS = 300

DEFAULT_REQUEST_SIGNATURE_LIFETIME_SECONDS = 60

_APP_NAME = "beltic-cli"
_APP_AUTHOR = "beltic"


def get_cache_dir() -> Path:
    """Schema cache directory; BELTIC_CACHE_DIR overrides the per-user platform default."""
    override = os.environ.get(ENV_CACHE_DIR)
    if override:
        return Path(override).expanduser()
    return user_cache_path(_APP_NAME, _APP_AUTHOR)


def get_schema_base_url() -> str:
    return os.environ.get(ENV_SCHEMA_BASE_URL, DEFAULT_SCHEMA_BASE_URL).rstrip("/")


def get_schema_timeout() -> float:
    """Fetch timeout in seconds; invalid or non-positive values fall back to the default."""
    raw = os.environ.get(ENV_SCHEMA_TIMEOUT)
    if not raw:
        return DEFAULT_SCHEMA_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_SCHEMA_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_SCHEMA_TIMEOUT_SECONDS
