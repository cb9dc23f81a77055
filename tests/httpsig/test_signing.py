"""Tests for RFC 9421 request signing and verification."""

from pathlib import Path

import pytest

from beltic.crypto.algorithms import decode_public
from beltic.crypto.encoding import b64url_decode
from beltic.crypto.keys import generate_key, load_public_key, write_public_key
from beltic.errors import HttpSignatureError, KeyFormatError
from beltic.httpsig import (
    REQUEST_TAG,
    HttpRequest,
    SignatureParams,
    build_signature_base,
    content_digest,
    sign_request,
    verify_request,
    verify_signature_base,
)
from tests.factories import ED25519_PUBLIC_PEM, KEY_DIRECTORY_URL

NOW = 1_700_000_000
URL = "https://api.example.com/v1/orders?id=7"


def _get() -> HttpRequest:
    return HttpRequest(method="GET", url=URL)


class TestSignatureParams:
    def test_serialize(self) -> None:
        params = SignatureParams(
            components=("@authority", "signature-agent"),
            keyid="abc",
            created=NOW,
            expires=NOW + 60,
            nonce="n0nce",
            tag=REQUEST_TAG,
        )
        assert params.serialize() == (
            '("@authority" "signature-agent");alg="ed25519";keyid="abc";'
            f'created={NOW};expires={NOW + 60};nonce="n0nce";tag="web-bot-auth"'
        )

    def test_serialize_without_optional_params(self) -> None:
        params = SignatureParams(components=("@authority",), keyid="k", created=1, expires=2)
        assert params.serialize() == '("@authority");alg="ed25519";keyid="k";created=1;expires=2'

    def test_parse(self) -> None:
        params = SignatureParams.new(
            ["@method", "@authority"], "kid", lifetime=30, tag=REQUEST_TAG, now=NOW
        )
        assert SignatureParams.parse(params.serialize()) == params

    def test_new_generates_distinct_nonces(self) -> None:
        first = SignatureParams.new(["@authority"], "k", lifetime=60, tag="t", now=NOW)
        second = SignatureParams.new(["@authority"], "k", lifetime=60, tag="t", now=NOW)

        assert first.nonce != second.nonce
        assert first.nonce is not None and len(b64url_decode(first.nonce)) == 32
        assert first.expires == NOW + 60

    @pytest.mark.parametrize(
        "value",
        [
            "",
            '"@authority";keyid="k"',
            '("@authority")keyid="k"',
            '("@authority");created=1;expires=2',
            '("@authority");keyid="k";created=soon;expires=2',
            '("@authority");keyid="k";expires=2',
        ],
    )
    def test_parse_malformed(self, value: str) -> None:
        with pytest.raises(HttpSignatureError):
            SignatureParams.parse(value)


def test_build_signature_base_format() -> None:
    base = build_signature_base(
        [("@method", "GET"), ("@authority", "api.example.com")],
        '("@method" "@authority");created=1',
    )
    assert base == (
        '"@method": GET\n'
        '"@authority": api.example.com\n'
        '"@signature-params": ("@method" "@authority");created=1'
    )


class TestSignRequest:
    def test_headers_and_base(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        keyid = load_public_key(ed25519_keys[1], "EdDSA").thumbprint()

        assert list(signed.headers) == ["Signature-Agent", "Signature-Input", "Signature"]
        assert signed.headers["Signature-Agent"] == f'"{KEY_DIRECTORY_URL}"'
        assert signed.headers["Signature-Input"].startswith(
            'sig1=("@method" "@authority" "@path" "signature-agent");alg="ed25519";'
            f'keyid="{keyid}";created={NOW};expires={NOW + 60};nonce="'
        )
        assert signed.headers["Signature-Input"].endswith(';tag="web-bot-auth"')
        assert signed.headers["Signature"].startswith("sig1=:")
        assert signed.keyid == keyid
        assert signed.signature_base.splitlines()[:4] == [
            '"@method": GET',
            '"@authority": api.example.com',
            '"@path": /v1/orders',
            f'"signature-agent": "{KEY_DIRECTORY_URL}"',
        ]

    def test_signature_verifies_over_base(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        public = decode_public(ED25519_PUBLIC_PEM.encode(), "EdDSA")

        assert verify_signature_base(signed.signature_base, signed.signature, public)
        assert not verify_signature_base(signed.signature_base + " ", signed.signature, public)

    def test_body_adds_content_digest(self, ed25519_keys: tuple[Path, Path]) -> None:
        request = HttpRequest(method="POST", url=URL, body='{"qty":1}')
        signed = sign_request(request, ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        assert signed.headers["Content-Digest"] == content_digest(b'{"qty":1}')
        assert signed.params.components[-1] == "content-digest"

    def test_custom_components(self, ed25519_keys: tuple[Path, Path]) -> None:
        request = HttpRequest(method="GET", url=URL, headers={"X-Request-Id": "r-1"})
        signed = sign_request(
            request, ed25519_keys[0], KEY_DIRECTORY_URL, components=["x-request-id"], now=NOW
        )

        assert signed.params.components == ("@authority", "x-request-id", "signature-agent")
        assert '"x-request-id": r-1' in signed.signature_base

    def test_missing_covered_header(self, ed25519_keys: tuple[Path, Path]) -> None:
        with pytest.raises(HttpSignatureError, match="not found in headers"):
            sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, components=["x-missing"])

    def test_key_directory_must_be_https(self, ed25519_keys: tuple[Path, Path]) -> None:
        with pytest.raises(HttpSignatureError, match="HTTPS"):
            sign_request(_get(), ed25519_keys[0], "http://agent.example/.well-known/x")

    def test_es256_key_rejected(self, es256_keys: tuple[Path, Path]) -> None:
        with pytest.raises(KeyFormatError):
            sign_request(_get(), es256_keys[0], KEY_DIRECTORY_URL)

    def test_non_positive_lifetime_rejected(self, ed25519_keys: tuple[Path, Path]) -> None:
        with pytest.raises(HttpSignatureError):
            sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, expires_in=0)

    def test_render_curl(self, ed25519_keys: tuple[Path, Path]) -> None:
        request = HttpRequest(
            method="post",
            url=URL,
            headers={"Content-Type": "application/json"},
            body="{\"note\":\"it's\"}",
        )
        signed = sign_request(request, ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        curl = signed.render_curl()

        assert curl.startswith(f"curl -X POST '{URL}' \\\n  -H 'Signature-Agent: ")
        assert "-H 'Content-Type: application/json'" in curl
        assert "-H 'Content-Digest: sha-256=:" in curl
        assert curl.endswith("-d '{\"note\":\"it'\\''s\"}'")

    def test_render_headers(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        lines = signed.render_headers().splitlines()

        assert [line.split(":", 1)[0] for line in lines] == [
            "Signature-Agent",
            "Signature-Input",
            "Signature",
        ]


class TestVerifyRequest:
    def test_round_trip(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        params = verify_request(_get(), signed.headers, ed25519_keys[1], now=NOW + 10)

        assert params == signed.params

    def test_round_trip_with_body(self, ed25519_keys: tuple[Path, Path]) -> None:
        request = HttpRequest(method="POST", url=URL, body="payload")
        signed = sign_request(request, ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        verify_request(request, signed.headers, ed25519_keys[1], now=NOW, expected_tag=REQUEST_TAG)

    def test_reordered_components_fail(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        headers = dict(signed.headers)
        headers["Signature-Input"] = headers["Signature-Input"].replace(
            '"@method" "@authority"', '"@authority" "@method"'
        )

        with pytest.raises(HttpSignatureError, match="verification failed"):
            verify_request(_get(), headers, ed25519_keys[1], now=NOW)

    def test_other_path_fails(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        other = HttpRequest(method="GET", url="https://api.example.com/v1/admin?id=7")

        with pytest.raises(HttpSignatureError, match="verification failed"):
            verify_request(other, signed.headers, ed25519_keys[1], now=NOW)

    def test_tampered_body_fails(self, ed25519_keys: tuple[Path, Path]) -> None:
        request = HttpRequest(method="POST", url=URL, body="payload")
        signed = sign_request(request, ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        tampered = HttpRequest(method="POST", url=URL, body="payload!")

        with pytest.raises(HttpSignatureError, match="Content-Digest"):
            verify_request(tampered, signed.headers, ed25519_keys[1], now=NOW)

    def test_expired(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        with pytest.raises(HttpSignatureError, match="expired"):
            verify_request(_get(), signed.headers, ed25519_keys[1], now=NOW + 61)

    def test_created_in_future(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        with pytest.raises(HttpSignatureError, match="not valid yet"):
            verify_request(_get(), signed.headers, ed25519_keys[1], now=NOW - 5)

    def test_other_key(self, tmp_path: Path, ed25519_keys: tuple[Path, Path]) -> None:
        other_public = write_public_key(tmp_path / "other.pem", generate_key())
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        with pytest.raises(HttpSignatureError, match="keyid"):
            verify_request(_get(), signed.headers, other_public, now=NOW)

    def test_wrong_tag(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        with pytest.raises(HttpSignatureError, match="tag"):
            verify_request(
                _get(), signed.headers, ed25519_keys[1], now=NOW, expected_tag="something-else"
            )

    def test_missing_headers(self, ed25519_keys: tuple[Path, Path]) -> None:
        with pytest.raises(HttpSignatureError, match="missing"):
            verify_request(_get(), {}, ed25519_keys[1], now=NOW)

    def test_unknown_label(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)

        with pytest.raises(HttpSignatureError, match="sig2"):
            verify_request(_get(), signed.headers, ed25519_keys[1], now=NOW, label="sig2")

    def test_header_names_case_insensitive(self, ed25519_keys: tuple[Path, Path]) -> None:
        signed = sign_request(_get(), ed25519_keys[0], KEY_DIRECTORY_URL, now=NOW)
        lowered = {name.lower(): value for name, value in signed.headers.items()}

        verify_request(_get(), lowered, ed25519_keys[1], now=NOW)
