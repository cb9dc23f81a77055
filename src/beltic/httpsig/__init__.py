"""HTTP message signatures (RFC 9421) for Web Bot Auth.

Public exports:
    HttpRequest: The request parts that can be covered by a signature
    sign_request / verify_request: Request signing and verification
    build_signature_base: Signature base construction
    KeyDirectory: Published key directory document
    generate_key_directory / sign_key_directory: Directory output
"""

from beltic.httpsig.components import DEFAULT_COMPONENTS, HttpRequest, content_digest
from beltic.httpsig.directory import (
    DIRECTORY_CONTENT_TYPE,
    DIRECTORY_TAG,
    DirectoryKey,
    KeyDirectory,
    SignedDirectory,
    generate_key_directory,
    sign_key_directory,
    verify_key_directory,
    write_key_directory,
)
from beltic.httpsig.signing import (
    REQUEST_TAG,
    WELL_KNOWN_DIRECTORY_PATH,
    SignatureParams,
    SignedRequest,
    build_signature_base,
    sign_request,
    verify_request,
    verify_signature_base,
)

__all__ = [
    "DEFAULT_COMPONENTS",
    "DIRECTORY_CONTENT_TYPE",
    "DIRECTORY_TAG",
    "REQUEST_TAG",
    "WELL_KNOWN_DIRECTORY_PATH",
    "DirectoryKey",
    "HttpRequest",
    "KeyDirectory",
    "SignatureParams",
    "SignedDirectory",
    "SignedRequest",
    "build_signature_base",
    "content_digest",
    "generate_key_directory",
    "sign_key_directory",
    "sign_request",
    "verify_key_directory",
    "verify_request",
    "verify_signature_base",
]
