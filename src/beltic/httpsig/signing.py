"""HTTP message signatures for Web Bot Auth (RFC 9421, Ed25519 only).

A signed request carries three headers:

    Signature-Agent: "<key directory URL>"
    Signature-Input: sig1=("@authority" ...);alg="ed25519";keyid=...;created=...;expires=...;nonce=...;tag="web-bot-auth"
    Signature: sig1=:<base64 signature>:

The ``keyid`` is the JWK thumbprint of the signing key, so a verifier can
pick the matching entry out of the published key directory.
"""

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from beltic.config import DEFAULT_REQUEST_SIGNATURE_LIFETIME_SECONDS
from beltic.crypto import algorithms
from beltic.crypto.algorithms import KeyMaterial, SignatureAlgorithm
from beltic.crypto.encoding import b64_decode, b64_encode, b64url_encode
from beltic.crypto.keys import load_private_key, load_public_key
from beltic.errors import HttpSignatureError
from beltic.httpsig.components import (
    CONTENT_DIGEST,
    SIGNATURE_AGENT,
    HttpRequest,
    component_value,
    content_digest,
    effective_components,
)
from beltic.observability import get_logger
from beltic.utils.sanitization import sanitize_nonce

logger = get_logger(__name__)

ED25519_ALG = "ed25519"
REQUEST_TAG = "web-bot-auth"
SIGNATURE_LABEL = "sig1"
NONCE_BYTES = 32
WELL_KNOWN_DIRECTORY_PATH = "/.well-known/http-message-signatures-directory"

HEADER_SIGNATURE = "Signature"
HEADER_SIGNATURE_INPUT = "Signature-Input"
HEADER_SIGNATURE_AGENT = "Signature-Agent"
HEADER_CONTENT_DIGEST = "Content-Digest"

_INNER_LIST_RE = re.compile(r'^\(((?:\s*"[^"\\]*")*)\s*\)(.*)$', re.DOTALL)
_QUOTED_RE = re.compile(r'"([^"\\]*)"')

PublicKeySource = Union[KeyMaterial, str, Path]


@dataclass(frozen=True)
class SignatureParams:
    """The ``@signature-params`` value: covered components plus metadata."""

    components: tuple[str, ...]
    keyid: str
    created: int
    expires: int
    nonce: str | None = None
    tag: str | None = None
    alg: str = ED25519_ALG

    @classmethod
    def new(
        cls,
        components: Sequence[str],
        keyid: str,
        *,
        lifetime: int,
        tag: str,
        now: int | None = None,
    ) -> SignatureParams:
        """Params created now, expiring after ``lifetime`` seconds, with a fresh nonce."""
        created = int(time.time()) if now is None else now
        return cls(
            components=tuple(components),
            keyid=keyid,
            created=created,
            expires=created + lifetime,
            nonce=b64url_encode(secrets.token_bytes(NONCE_BYTES)),
            tag=tag,
        )

    def serialize(self) -> str:
        covered = " ".join(f'"{component}"' for component in self.components)
        value = (
            f'({covered});alg="{self.alg}";keyid="{self.keyid}"'
            f";created={self.created};expires={self.expires}"
        )
        if self.nonce is not None:
            value += f';nonce="{self.nonce}"'
        if self.tag is not None:
            value += f';tag="{self.tag}"'
        return value

    @classmethod
    def parse(cls, value: str) -> SignatureParams:
        """Parse one ``Signature-Input`` member value (without the ``sig1=`` label).

        Raises:
            HttpSignatureError: The value is not an inner list with the
                required ``keyid``, ``created`` and ``expires`` parameters.
        """
        match = _INNER_LIST_RE.match(value.strip())
        if match is None:
            raise HttpSignatureError(
                "malformed signature parameters: expected a list of quoted components",
                details={"value": value},
            )
        components = tuple(_QUOTED_RE.findall(match.group(1)))
        rest = match.group(2).strip()

        params: dict[str, Union[str, int]] = {}
        if rest:
            if not rest.startswith(";"):
                raise HttpSignatureError(f"malformed signature parameters: {rest!r}")
            for chunk in rest[1:].split(";"):
                name, sep, raw = chunk.strip().partition("=")
                if not sep or not name:
                    raise HttpSignatureError(f"malformed signature parameter: {chunk!r}")
                raw = raw.strip()
                if len(raw) >= 2 and raw.startswith('"') and raw.endswith('"'):
                    params[name] = raw[1:-1]
                    continue
                try:
                    params[name] = int(raw)
                except ValueError as exc:
                    raise HttpSignatureError(
                        f"signature parameter '{name}' must be a string or integer"
                    ) from exc

        keyid, created, expires = params.get("keyid"), params.get("created"), params.get("expires")
        if not isinstance(keyid, str):
            raise HttpSignatureError("signature parameters are missing 'keyid'")
        if not isinstance(created, int) or not isinstance(expires, int):
            raise HttpSignatureError("signature parameters need integer 'created' and 'expires'")
        nonce, tag, alg = params.get("nonce"), params.get("tag"), params.get("alg", ED25519_ALG)
        return cls(
            components=components,
            keyid=keyid,
            created=created,
            expires=expires,
            nonce=nonce if isinstance(nonce, str) else None,
            tag=tag if isinstance(tag, str) else None,
            alg=str(alg),
        )


def build_signature_base(
    lines: Sequence[tuple[str, str]],
    params: SignatureParams | str,
) -> str:
    """Signature base: one ``"<id>": <value>`` line per component, then ``@signature-params``.

    Lines are joined with ``\\n`` in the given order, with no trailing newline.
    ``params`` may be a raw serialized value taken from a received header.
    """
    serialized = params if isinstance(params, str) else params.serialize()
    out = [f'"{identifier}": {value}' for identifier, value in lines]
    out.append(f'"@signature-params": {serialized}')
    return "\n".join(out)


def _shell_quote(value: str) -> str:
    return "'" + value.replace("'", "'\\''") + "'"


@dataclass(frozen=True)
class SignedRequest:
    """Result of signing a request; render with ``render_headers`` or ``render_curl``."""

    request: HttpRequest
    key_directory: str
    params: SignatureParams
    signature: bytes = field(repr=False)
    signature_base: str = field(repr=False)
    content_digest: str | None = None

    @property
    def keyid(self) -> str:
        return self.params.keyid

    @property
    def headers(self) -> dict[str, str]:
        """Headers to add to the request, in emission order."""
        headers = {
            HEADER_SIGNATURE_AGENT: f'"{self.key_directory}"',
            HEADER_SIGNATURE_INPUT: f"{SIGNATURE_LABEL}={self.params.serialize()}",
            HEADER_SIGNATURE: f"{SIGNATURE_LABEL}=:{b64_encode(self.signature)}:",
        }
        if self.content_digest is not None:
            headers[HEADER_CONTENT_DIGEST] = self.content_digest
        return headers

    def render_headers(self) -> str:
        return "\n".join(f"{name}: {value}" for name, value in self.headers.items())

    def render_curl(self) -> str:
        """A copy-pasteable curl command sending the signed request."""
        parts = [f"curl -X {self.request.method.upper()} {_shell_quote(self.request.url)}"]
        signed = {name.lower() for name in self.headers}
        parts.extend(
            f"-H {_shell_quote(f'{name}: {value}')}" for name, value in self.headers.items()
        )
        parts.extend(
            f"-H {_shell_quote(f'{name}: {value}')}"
            for name, value in self.request.headers.items()
            if name.lower() not in signed
        )
        body = self.request.body
        if body is not None:
            text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
            parts.append(f"-d {_shell_quote(text)}")
        return " \\\n  ".join(parts)


def check_key_directory_url(key_directory: str) -> None:
    """Require an HTTPS key directory URL; warn when it is not the well-known path."""
    if not key_directory.startswith("https://"):
        raise HttpSignatureError(
            "key-directory must be an HTTPS URL",
            details={"key_directory": key_directory},
        )
    if not key_directory.endswith(WELL_KNOWN_DIRECTORY_PATH):
        logger.warning(
            "beltic.httpsig.key_directory_path",
            key_directory=key_directory,
            expected_suffix=WELL_KNOWN_DIRECTORY_PATH,
        )


def sign_request(
    request: HttpRequest,
    key_path: str | Path,
    key_directory: str,
    *,
    components: Optional[Sequence[str]] = None,
    expires_in: int = DEFAULT_REQUEST_SIGNATURE_LIFETIME_SECONDS,
    now: int | None = None,
) -> SignedRequest:
    """Sign ``request`` with the Ed25519 key at ``key_path``.

    Args:
        request: Method, URL, headers and optional body to sign.
        key_path: Ed25519 private key (PKCS#8 PEM).
        key_directory: HTTPS URL of the signer's key directory.
        components: Components to cover; defaults to @method, @authority,
            @path and signature-agent.
        expires_in: Signature validity in seconds.
        now: Creation time override (Unix seconds).

    Raises:
        HttpSignatureError: Bad key directory URL, bad request URL, or a
            covered header the request does not carry.
        KeyFormatError: The key is not an Ed25519 private key.
    """
    check_key_directory_url(key_directory)
    if expires_in <= 0:
        raise HttpSignatureError("expires_in must be a positive number of seconds")

    material = load_private_key(key_path, SignatureAlgorithm.EDDSA)
    body = request.body_bytes
    covered = effective_components(
        list(components) if components is not None else None, body is not None
    )
    lines = [(c, component_value(request, c, key_directory)) for c in covered]
    params = SignatureParams.new(
        covered, material.thumbprint(), lifetime=expires_in, tag=REQUEST_TAG, now=now
    )
    base = build_signature_base(lines, params)
    signature = algorithms.sign(material, base.encode("utf-8"))

    logger.info(
        "beltic.httpsig.signed",
        keyid=params.keyid,
        components=list(covered),
        expires=params.expires,
        nonce=sanitize_nonce(params.nonce),
    )
    return SignedRequest(
        request=request,
        key_directory=key_directory,
        params=params,
        signature=signature,
        signature_base=base,
        content_digest=content_digest(body) if body is not None else None,
    )


def verify_signature_base(base: str, signature: bytes, public_key: KeyMaterial) -> bool:
    """True when ``signature`` is a valid Ed25519 signature over ``base``."""
    if public_key.algorithm is not SignatureAlgorithm.EDDSA:
        return False
    return algorithms.verify(public_key, base.encode("utf-8"), signature)


def _find_header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value.strip()
    return None


def _split_members(value: str) -> dict[str, str]:
    """Split a structured-field dictionary into ``label -> raw member value``."""
    members: dict[str, str] = {}
    depth = 0
    quoted = False
    start = 0
    chunks: list[str] = []
    for index, char in enumerate(value):
        if char == '"':
            quoted = not quoted
        elif not quoted and char == "(":
            depth += 1
        elif not quoted and char == ")":
            depth -= 1
        elif not quoted and depth == 0 and char == ",":
            chunks.append(value[start:index])
            start = index + 1
    chunks.append(value[start:])
    for chunk in chunks:
        label, sep, member = chunk.strip().partition("=")
        if sep:
            members[label.strip()] = member.strip()
    return members


def _load_public(public_key: PublicKeySource) -> KeyMaterial:
    if isinstance(public_key, KeyMaterial):
        return public_key.public()
    return load_public_key(public_key, SignatureAlgorithm.EDDSA)


def verify_request(
    request: HttpRequest,
    headers: Mapping[str, str],
    public_key: PublicKeySource,
    *,
    now: int | None = None,
    label: str = SIGNATURE_LABEL,
    expected_tag: str | None = None,
) -> SignatureParams:
    """Verify the signature ``label`` in ``headers`` against ``request``.

    The signature base is rebuilt from the components in the order the
    signer declared them, using the received ``@signature-params`` text
    verbatim.

    Returns:
        The parsed signature parameters.

    Raises:
        HttpSignatureError: Missing headers, a keyid that is not this key's
            thumbprint, a signature outside its validity window, or a bad
            signature.
    """
    raw_input = _find_header(headers, HEADER_SIGNATURE_INPUT)
    raw_signature = _find_header(headers, HEADER_SIGNATURE)
    if raw_input is None or raw_signature is None:
        raise HttpSignatureError("request is missing Signature-Input or Signature header")

    input_member = _split_members(raw_input).get(label)
    signature_member = _split_members(raw_signature).get(label)
    if input_member is None or signature_member is None:
        raise HttpSignatureError(f"no signature labelled '{label}'", details={"label": label})

    params = SignatureParams.parse(input_member)
    if params.alg != ED25519_ALG:
        raise HttpSignatureError(f"unsupported signature alg '{params.alg}'")
    if expected_tag is not None and params.tag != expected_tag:
        raise HttpSignatureError(
            f"signature tag '{params.tag}' does not match '{expected_tag}'",
            details={"tag": params.tag, "expected": expected_tag},
        )

    material = _load_public(public_key)
    if params.keyid != material.thumbprint():
        raise HttpSignatureError(
            "signature keyid does not match the public key thumbprint",
            details={"keyid": params.keyid},
        )

    current = int(time.time()) if now is None else now
    if current > params.expires:
        raise HttpSignatureError("signature has expired", details={"expires": params.expires})
    if params.created > current:
        raise HttpSignatureError("signature is not valid yet", details={"created": params.created})

    merged = HttpRequest(
        method=request.method,
        url=request.url,
        headers={**request.headers, **headers},
        body=request.body,
    )
    key_directory = ""
    if SIGNATURE_AGENT in params.components:
        agent = merged.header(SIGNATURE_AGENT)
        if agent is None:
            raise HttpSignatureError("signed component 'signature-agent' header is missing")
        key_directory = agent.strip('"')

    body = merged.body_bytes
    received_digest = merged.header(CONTENT_DIGEST)
    if body is not None and received_digest is not None and received_digest != content_digest(body):
        raise HttpSignatureError("Content-Digest does not match the request body")

    lines = [(c, component_value(merged, c, key_directory)) for c in params.components]
    base = build_signature_base(lines, input_member)

    member = signature_member.strip()
    if not (len(member) >= 2 and member.startswith(":") and member.endswith(":")):
        raise HttpSignatureError("Signature member is not a byte sequence")
    try:
        signature = b64_decode(member[1:-1])
    except ValueError as exc:
        raise HttpSignatureError(f"Signature is not valid base64: {exc}") from exc

    if not verify_signature_base(base, signature, material):
        raise HttpSignatureError("HTTP message signature verification failed")
    logger.info("beltic.httpsig.verified", keyid=params.keyid, tag=params.tag)
    return params
