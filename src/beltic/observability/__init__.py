"""Observability module for Beltic.

Structured logging (structlog) with console output for interactive use and
JSON output for pipelines.

Example:
    >>> from beltic.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("beltic.jws.signed", alg="EdDSA")
"""

from beltic.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
]
