"""Utility modules for Beltic.

File helpers shared by the schema cache and key-directory output, and
redaction helpers for values that appear in logs.
"""

from beltic.utils.files import atomic_write_text
from beltic.utils.sanitization import sanitize_nonce, sanitize_url

__all__ = [
    "atomic_write_text",
    "sanitize_nonce",
    "sanitize_url",
]
