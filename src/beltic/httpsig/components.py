"""Component values for HTTP message signatures (RFC 9421 section 2).

Derived components (``@method``, ``@authority``, ...) come from the request
line and URL; ``signature-agent`` and ``content-digest`` are computed;
anything else is looked up as a request header.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx

from beltic.crypto.encoding import b64_encode
from beltic.errors import HttpSignatureError

SIGNATURE_AGENT = "signature-agent"
CONTENT_DIGEST = "content-digest"
AUTHORITY = "@authority"

DERIVED_COMPONENTS = (
    "@method",
    AUTHORITY,
    "@scheme",
    "@path",
    "@query",
    "@target-uri",
    "@request-target",
)

DEFAULT_COMPONENTS = ("@method", AUTHORITY, "@path", SIGNATURE_AGENT)


def content_digest(body: bytes) -> str:
    """``Content-Digest`` value (RFC 9530): ``sha-256=:<base64>:``."""
    return f"sha-256=:{b64_encode(hashlib.sha256(body).digest())}:"


@dataclass(frozen=True)
class HttpRequest:
    """The parts of an outgoing request that can be signed.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        url: Full request URL, as sent
        headers: Request headers; names are matched case-insensitively
        body: Optional request body; str bodies are UTF-8 encoded
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | str | None = None

    @property
    def body_bytes(self) -> bytes | None:
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value.strip()
        return None

    def parsed_url(self) -> httpx.URL:
        try:
            url = httpx.URL(self.url)
        except httpx.InvalidURL as exc:
            raise HttpSignatureError(f"invalid URL {self.url!r}: {exc}") from exc
        if not url.scheme or not url.host:
            raise HttpSignatureError(
                f"URL must be absolute with a host: {self.url!r}",
                details={"url": self.url},
            )
        return url


def _path_and_query(url: httpx.URL) -> tuple[str, str]:
    # raw_path keeps percent-encoding, which is what goes on the wire.
    raw = url.raw_path.decode("ascii")
    path, _, query = raw.partition("?")
    return path or "/", query


def component_value(request: HttpRequest, identifier: str, key_directory: str) -> str:
    """Value of one component identifier for ``request``.

    Raises:
        HttpSignatureError: The component is a header the request does not carry.
    """
    if identifier == "@method":
        return request.method.upper()
    if identifier in DERIVED_COMPONENTS:
        url = request.parsed_url()
        path, query = _path_and_query(url)
        if identifier == AUTHORITY:
            return url.netloc.decode("ascii")
        if identifier == "@scheme":
            return url.scheme
        if identifier == "@path":
            return path
        if identifier == "@query":
            return f"?{query}"
        if identifier == "@target-uri":
            return request.url
        return f"{request.method.lower()} {path}{'?' + query if query else ''}"
    if identifier == SIGNATURE_AGENT:
        return f'"{key_directory}"'
    if identifier == CONTENT_DIGEST:
        body = request.body_bytes
        if body is not None:
            return content_digest(body)

    value = request.header(identifier)
    if value is None:
        raise HttpSignatureError(
            f"component '{identifier}' not found in headers",
            details={"component": identifier},
        )
    return value


def effective_components(
    requested: list[str] | tuple[str, ...] | None,
    has_body: bool,
) -> list[str]:
    """Component list to sign, in declaration order.

    ``@authority`` is always present (first when added here),
    ``signature-agent`` is always present (last when added here), and
    ``content-digest`` is added for requests with a body.
    """
    normalized = [c.strip().lower() for c in requested or DEFAULT_COMPONENTS if c.strip()]
    components = list(dict.fromkeys(normalized))
    if AUTHORITY not in components:
        components.insert(0, AUTHORITY)
    if SIGNATURE_AGENT not in components:
        components.append(SIGNATURE_AGENT)
    if has_body and CONTENT_DIGEST not in components:
        components.append(CONTENT_DIGEST)
    return components
