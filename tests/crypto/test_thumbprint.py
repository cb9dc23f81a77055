"""Tests for RFC 7638 JWK thumbprints."""

import pytest

from beltic.crypto.algorithms import decode_public
from beltic.crypto.encoding import b64url_decode
from beltic.crypto.keys import generate_key
from beltic.crypto.thumbprint import jwk_thumbprint, thumbprint, thumbprint_from_x
from beltic.errors import KeyFormatError
from tests.factories import ED25519_PUBLIC_PEM, ES256_PUBLIC_PEM

# RFC 8037 appendix A.3
RFC8037_X = "11qYAYKxCrfVS_7TyWQHOg7hcvPapiMlrwIaaPcHURo"
RFC8037_THUMBPRINT = "kPrK_qmxVWaYVA9wwBF6Iuo3vVzz7TxHCTwXBygrS4k"


def test_rfc8037_ed25519_vector() -> None:
    assert thumbprint_from_x(RFC8037_X) == RFC8037_THUMBPRINT


def test_raw_bytes_and_x_agree() -> None:
    assert thumbprint(b64url_decode(RFC8037_X)) == RFC8037_THUMBPRINT


def test_thumbprint_is_deterministic() -> None:
    material = decode_public(ED25519_PUBLIC_PEM.encode(), "EdDSA")
    first = material.thumbprint()

    assert first == material.thumbprint()
    assert first == thumbprint(material.public_key_bytes())
    assert len(first) == 43
    assert "=" not in first


def test_member_order_and_extra_members_do_not_matter() -> None:
    reordered = {"x": RFC8037_X, "kty": "OKP", "crv": "Ed25519"}
    with_extras = {**reordered, "kid": "anything", "alg": "EdDSA", "use": "sig"}

    assert jwk_thumbprint(reordered) == RFC8037_THUMBPRINT
    assert jwk_thumbprint(with_extras) == RFC8037_THUMBPRINT


@pytest.mark.parametrize("alg", ["EdDSA", "ES256"])
def test_matches_joserfc_thumbprint(alg: str) -> None:
    material = generate_key(alg)
    assert material.thumbprint() == material.public().to_jose_key().thumbprint()


def test_ec_thumbprint_uses_y() -> None:
    jwk = decode_public(ES256_PUBLIC_PEM.encode(), "ES256").public_jwk()
    other = {**jwk, "y": jwk["x"]}

    assert jwk_thumbprint(jwk) != jwk_thumbprint(other)


def test_different_keys_have_different_thumbprints() -> None:
    assert generate_key().thumbprint() != generate_key().thumbprint()


def test_wrong_length_rejected() -> None:
    with pytest.raises(KeyFormatError, match="32 bytes"):
        thumbprint(b"\x01" * 31)


def test_unsupported_kty_rejected() -> None:
    with pytest.raises(KeyFormatError, match="kty"):
        jwk_thumbprint({"kty": "RSA", "n": "abc", "e": "AQAB"})


def test_missing_member_rejected() -> None:
    with pytest.raises(KeyFormatError, match="'y'"):
        jwk_thumbprint({"kty": "EC", "crv": "P-256", "x": "abc"})
