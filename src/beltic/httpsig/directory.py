"""Key directories for Web Bot Auth.

A key directory is served at ``/.well-known/http-message-signatures-directory``
and lists the Ed25519 keys an agent signs requests with. The response may be
signed over ``@authority`` so a client can tell it was produced by the key
holder for that host; the signature lifetime doubles as the Cache-Control
max-age so a cached response never outlives its signature.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from beltic.config import DIRECTORY_SIGNATURE_LIFETIME_SECONDS
from beltic.crypto import algorithms
from beltic.crypto.algorithms import KeyMaterial, SignatureAlgorithm
from beltic.crypto.encoding import b64_encode, b64url_encode
from beltic.crypto.keys import load_private_key, load_public_key
from beltic.crypto.thumbprint import thumbprint_from_x
from beltic.errors import HttpSignatureError
from beltic.httpsig.components import AUTHORITY, HttpRequest
from beltic.httpsig.signing import (
    HEADER_SIGNATURE,
    HEADER_SIGNATURE_INPUT,
    SIGNATURE_LABEL,
    WELL_KNOWN_DIRECTORY_PATH,
    PublicKeySource,
    SignatureParams,
    build_signature_base,
    verify_request,
)
from beltic.observability import get_logger
from beltic.utils.files import atomic_write_text

logger = get_logger(__name__)

DIRECTORY_TAG = "http-message-signatures-directory"
DIRECTORY_CONTENT_TYPE = "application/http-message-signatures-directory+json"

HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CACHE_CONTROL = "Cache-Control"


class DirectoryKey(BaseModel):
    """One Ed25519 public key as a JWK."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kty: Literal["OKP"] = "OKP"
    crv: Literal["Ed25519"] = "Ed25519"
    x: str = Field(..., min_length=1, description="Base64url raw public key.")

    def thumbprint(self) -> str:
        return thumbprint_from_x(self.x)


class KeyDirectory(BaseModel):
    """The key directory document."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    keys: list[DirectoryKey] = Field(..., min_length=1)
    agent_credential_url: Optional[str] = Field(default=None, alias="agentCredentialUrl")
    agent_metadata: Optional[dict[str, Any]] = Field(default=None, alias="agentMetadata")

    def thumbprints(self) -> list[str]:
        return [key.thumbprint() for key in self.keys]

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = {"keys": [key.model_dump() for key in self.keys]}
        if self.agent_credential_url is not None:
            document["agentCredentialUrl"] = self.agent_credential_url
        if self.agent_metadata is not None:
            document["agentMetadata"] = self.agent_metadata
        return document

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def _directory_key(source: Union[KeyMaterial, str, Path]) -> DirectoryKey:
    if isinstance(source, KeyMaterial):
        material = source
    else:
        material = load_public_key(source, SignatureAlgorithm.EDDSA)
    if material.algorithm is not SignatureAlgorithm.EDDSA:
        raise HttpSignatureError("key directories only hold Ed25519 keys")
    return DirectoryKey(x=b64url_encode(material.public_key_bytes()))


def generate_key_directory(
    public_keys: Sequence[Union[KeyMaterial, str, Path]],
    credential_url: str | None = None,
    agent_metadata: Mapping[str, Any] | None = None,
) -> KeyDirectory:
    """Build a key directory from Ed25519 public keys (paths or loaded keys).

    Raises:
        HttpSignatureError: No keys were given, or a key is not Ed25519.
        KeyFormatError: A key file cannot be read.
    """
    if not public_keys:
        raise HttpSignatureError("at least one public key is required")
    return KeyDirectory(
        keys=[_directory_key(source) for source in public_keys],
        agent_credential_url=credential_url,
        agent_metadata=dict(agent_metadata) if agent_metadata is not None else None,
    )


def write_key_directory(directory: KeyDirectory, path: str | Path) -> Path:
    """Write the directory as pretty-printed JSON, replacing ``path`` atomically."""
    target = atomic_write_text(path, directory.to_json())
    logger.info("beltic.directory.written", path=str(target), keys=len(directory.keys))
    return target


@dataclass(frozen=True)
class SignedDirectory:
    """Response headers that sign a key directory for one authority."""

    authority: str
    params: SignatureParams
    signature: bytes = field(repr=False)
    signature_base: str = field(repr=False)

    @property
    def headers(self) -> dict[str, str]:
        return {
            HEADER_CONTENT_TYPE: DIRECTORY_CONTENT_TYPE,
            HEADER_SIGNATURE: f"{SIGNATURE_LABEL}=:{b64_encode(self.signature)}:",
            HEADER_SIGNATURE_INPUT: f"{SIGNATURE_LABEL}={self.params.serialize()}",
            HEADER_CACHE_CONTROL: f"max-age={DIRECTORY_SIGNATURE_LIFETIME_SECONDS}",
        }

    def render_headers(self) -> str:
        return "\n".join(f"{name}: {value}" for name, value in self.headers.items())


def _check_authority(authority: str) -> str:
    authority = authority.strip()
    if not authority or "://" in authority or "/" in authority:
        raise HttpSignatureError(
            f"authority must be a host[:port], got {authority!r}",
            details={"authority": authority},
        )
    return authority.lower()


def sign_key_directory(
    key_path: str | Path,
    authority: str,
    *,
    now: int | None = None,
) -> SignedDirectory:
    """Sign a directory response for ``authority`` with the Ed25519 key at ``key_path``.

    ``@authority`` is the only covered component and the signature is
    valid for DIRECTORY_SIGNATURE_LIFETIME_SECONDS.
    """
    authority = _check_authority(authority)
    material = load_private_key(key_path, SignatureAlgorithm.EDDSA)
    params = SignatureParams.new(
        (AUTHORITY,),
        material.thumbprint(),
        lifetime=DIRECTORY_SIGNATURE_LIFETIME_SECONDS,
        tag=DIRECTORY_TAG,
        now=now,
    )
    base = build_signature_base([(AUTHORITY, authority)], params)
    signature = algorithms.sign(material, base.encode("utf-8"))
    logger.info("beltic.directory.signed", authority=authority, keyid=params.keyid)
    return SignedDirectory(
        authority=authority,
        params=params,
        signature=signature,
        signature_base=base,
    )


def verify_key_directory(
    authority: str,
    headers: Mapping[str, str],
    public_key: PublicKeySource,
    *,
    now: int | None = None,
) -> SignatureParams:
    """Check a directory response signature for ``authority``.

    Raises:
        HttpSignatureError: Wrong tag, covered components other than
            ``@authority``, or an invalid or expired signature.
    """
    authority = _check_authority(authority)
    request = HttpRequest(method="GET", url=f"https://{authority}{WELL_KNOWN_DIRECTORY_PATH}")
    params = verify_request(request, headers, public_key, now=now, expected_tag=DIRECTORY_TAG)
    if params.components != (AUTHORITY,):
        raise HttpSignatureError(
            "directory signatures must cover only @authority",
            details={"components": list(params.components)},
        )
    return params
