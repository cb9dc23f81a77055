"""Structured logging configuration for Beltic.

This module configures structlog for structured logging with support for
both development (console) and machine-readable (JSON) output formats.

Logs are written to stderr: the CLI writes tokens, headers and directory
documents to stdout, and those must stay free of log lines.

Environment Variables:
    BELTIC_LOG_FORMAT: Set to "json" for JSON output, "console" for colored output
    BELTIC_LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR)

Example:
    >>> from beltic.observability.logging import get_logger, configure_logging
    >>>
    >>> configure_logging(log_format="json", log_level="INFO")
    >>> logger = get_logger("beltic.schemas.resolver")
    >>> logger.info("beltic.schema.fetched", kind="agent")
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.typing import Processor

# Default configuration
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_FORMAT = "console"

# Environment variable names
ENV_LOG_FORMAT = "BELTIC_LOG_FORMAT"
ENV_LOG_LEVEL = "BELTIC_LOG_LEVEL"

# Module-level flag to track if logging has been configured
_logging_configured = False


def _get_log_level() -> str:
    """Get log level from environment or use default."""
    return os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()


def _get_log_format() -> str:
    """Get log format from environment or use default."""
    return os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT).lower()


def _get_shared_processors() -> list[Processor]:
    """Get shared processors for all log formats."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _get_renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    force: bool = False,
) -> None:
    """Configure structured logging for the package.

    Args:
        log_format: Output format - "json" or "console". Defaults to env var or "console"
        log_level: Minimum log level. Defaults to env var or "WARNING"
        force: If True, reconfigure even if already configured
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = log_format or _get_log_format()
    log_level = (log_level or _get_log_level()).upper()
    shared_processors = _get_shared_processors()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _get_renderer(log_format),
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    package_logger = logging.getLogger("beltic")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, log_level, logging.WARNING))
    package_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given name.

    If logging has not been configured, it will be configured with default
    settings.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Bound structlog logger
    """
    if not _logging_configured:
        configure_logging()

    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables that will be included in all subsequent logs.

    Args:
        **kwargs: Key-value pairs to bind to the log context
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
