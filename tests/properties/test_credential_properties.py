"""Property-based tests for credential claims, JWS and thumbprints.

Round-trip: any valid claim set signed and verified comes back unchanged.
Thumbprints depend only on the required JWK members. Claim building rejects
every expiration that is not strictly after issuance, for both kinds.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from beltic.credentials.claims import ClaimSet, build_claims
from beltic.credentials.kinds import CredentialKind
from beltic.crypto.algorithms import SignatureAlgorithm
from beltic.crypto.encoding import b64url_encode
from beltic.crypto.jws import sign_jws, verify_jws
from beltic.crypto.thumbprint import jwk_thumbprint
from beltic.errors import ClaimValidationError
from tests.factories import (
    ED25519_PRIVATE_PEM,
    ED25519_PUBLIC_PEM,
    ES256_PRIVATE_PEM,
    ES256_PUBLIC_PEM,
    create_agent_credential,
    create_developer_credential,
    write_key_pair,
)

# Past and far-future bounds keep generated tokens inside their validity window.
_PAST_MIN = 946684800  # 2000-01-01
_PAST_MAX = 1700000000
_FUTURE_MIN = 4000000000
_FUTURE_MAX = 4102444800  # 2100-01-01

# Seconds that render as a four-digit year.
_RFC3339_MAX = 253402300799


@pytest.fixture(scope="module")
def key_pairs(tmp_path_factory: pytest.TempPathFactory) -> dict[SignatureAlgorithm, tuple[Path, Path]]:
    directory = tmp_path_factory.mktemp("property-keys")
    return {
        SignatureAlgorithm.EDDSA: write_key_pair(
            directory, ED25519_PRIVATE_PEM, ED25519_PUBLIC_PEM, "ed25519"
        ),
        SignatureAlgorithm.ES256: write_key_pair(
            directory, ES256_PRIVATE_PEM, ES256_PUBLIC_PEM, "es256"
        ),
    }


# --- Shared strategies ---


def st_json_value() -> st.SearchStrategy[Any]:
    """JSON values that survive a dumps/loads cycle unchanged."""
    scalars = st.none() | st.booleans() | st.integers() | st.text(max_size=40)
    return st.recursive(
        scalars,
        lambda children: st.lists(children, max_size=4)
        | st.dictionaries(st.text(max_size=12), children, max_size=4),
        max_leaves=12,
    )


def st_did() -> st.SearchStrategy[str]:
    method = st.sampled_from(["web", "key", "agent"])
    ident = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789.-", min_size=1, max_size=40)
    return st.builds(lambda m, i: f"did:{m}:{i}", method, ident)


def st_audience() -> st.SearchStrategy[str | list[str] | None]:
    value = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789:/.-", min_size=1, max_size=40)
    return st.none() | value | st.lists(value, min_size=2, max_size=4, unique=True)


@st.composite
def st_claim_set(draw: st.DrawFn) -> ClaimSet:
    """Valid claim sets with a window that contains the present."""
    nbf = draw(st.integers(min_value=_PAST_MIN, max_value=_PAST_MAX))
    return ClaimSet(
        iss=draw(st_did()),
        sub=draw(st_did()),
        jti=str(draw(st.uuids())),
        nbf=nbf,
        exp=draw(st.integers(min_value=_FUTURE_MIN, max_value=_FUTURE_MAX)),
        iat=nbf,
        aud=draw(st_audience()),
        vc=draw(st.dictionaries(st.text(max_size=20), st_json_value(), max_size=6)),
    )


def st_public_jwk() -> st.SearchStrategy[dict[str, str]]:
    coordinate = st.binary(min_size=32, max_size=32).map(b64url_encode)
    okp = st.builds(lambda x: {"kty": "OKP", "crv": "Ed25519", "x": x}, coordinate)
    ec = st.builds(
        lambda x, y: {"kty": "EC", "crv": "P-256", "x": x, "y": y}, coordinate, coordinate
    )
    return okp | ec


def _rfc3339(seconds: int) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _credential(kind: CredentialKind, nbf: int, exp: int) -> dict[str, Any]:
    factory = create_agent_credential if kind is CredentialKind.AGENT else create_developer_credential
    return factory(**{kind.issuance_field: _rfc3339(nbf), kind.expiration_field: _rfc3339(exp)})


def _expected_audience(aud: str | list[str] | None) -> str | None:
    if isinstance(aud, list):
        return aud[-1]
    return aud


# --- Properties ---


class TestSignVerifyRoundTrip:
    """verify(sign(claims)) returns the claims unchanged."""

    @settings(deadline=None)
    @given(claims=st_claim_set(), alg=st.sampled_from(list(SignatureAlgorithm)))
    def test_claims_survive_round_trip(
        self,
        key_pairs: dict[SignatureAlgorithm, tuple[Path, Path]],
        claims: ClaimSet,
        alg: SignatureAlgorithm,
    ) -> None:
        private_path, public_path = key_pairs[alg]
        payload = claims.to_claims()

        token = sign_jws(payload, private_path, alg, typ="application/beltic-agent+jwt")
        verified = verify_jws(token, public_path, _expected_audience(claims.aud))

        assert verified.payload == payload
        assert verified.algorithm is alg
        assert ClaimSet.model_validate(verified.payload) == claims


class TestThumbprintDeterminism:
    """Thumbprints depend only on the required members, never on order or extras."""

    @given(jwk=st_public_jwk(), data=st.data())
    def test_member_order_is_irrelevant(self, jwk: dict[str, str], data: st.DataObject) -> None:
        shuffled = dict(data.draw(st.permutations(list(jwk.items()))))

        assert jwk_thumbprint(shuffled) == jwk_thumbprint(jwk)

    @given(
        jwk=st_public_jwk(),
        extras=st.dictionaries(
            st.sampled_from(["kid", "alg", "use", "d", "key_ops"]), st.text(max_size=20)
        ),
    )
    def test_extra_members_are_ignored(self, jwk: dict[str, str], extras: dict[str, str]) -> None:
        assert jwk_thumbprint({**extras, **jwk}) == jwk_thumbprint(jwk)

    @given(jwk=st_public_jwk())
    def test_repeated_calls_agree(self, jwk: dict[str, str]) -> None:
        first = jwk_thumbprint(jwk)

        assert jwk_thumbprint(dict(jwk)) == first
        assert len(first) == 43


class TestExpiryOrdering:
    """build_claims accepts a window only when expiration is after issuance."""

    @given(
        kind=st.sampled_from(list(CredentialKind)),
        nbf=st.integers(min_value=0, max_value=_RFC3339_MAX),
        back=st.integers(min_value=0, max_value=10**9),
    )
    def test_expiry_at_or_before_issuance_is_rejected(
        self, kind: CredentialKind, nbf: int, back: int
    ) -> None:
        exp = max(nbf - back, 0)

        with pytest.raises(ClaimValidationError) as exc_info:
            build_claims(_credential(kind, nbf, exp), kind)
        assert exc_info.value.claim == "exp"

    @given(
        kind=st.sampled_from(list(CredentialKind)),
        nbf=st.integers(min_value=0, max_value=_RFC3339_MAX - 1),
        ahead=st.integers(min_value=1, max_value=10**9),
    )
    def test_expiry_after_issuance_is_kept(
        self, kind: CredentialKind, nbf: int, ahead: int
    ) -> None:
        exp = min(nbf + ahead, _RFC3339_MAX)

        claims = build_claims(_credential(kind, nbf, exp), kind)

        assert (claims.nbf, claims.exp, claims.iat) == (nbf, exp, nbf)
