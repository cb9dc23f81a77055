"""Tests for credential kinds and kind resolution."""

import pytest

from beltic.credentials.kinds import (
    AGENT_TYP,
    DEVELOPER_TYP,
    CredentialKind,
    credential_kind_from_typ,
    detect_credential_kind,
    parse_credential_kind,
    resolve_kind,
)
from beltic.errors import TypeResolutionError
from tests.factories import create_agent_credential, create_developer_credential

AGENT = CredentialKind.AGENT
DEVELOPER = CredentialKind.DEVELOPER


class TestCredentialKind:
    def test_media_types(self) -> None:
        assert AGENT.media_type == "application/beltic-agent+jwt"
        assert DEVELOPER.media_type == "application/beltic-developer+jwt"

    def test_field_names(self) -> None:
        assert AGENT.issuance_field == "credentialIssuanceDate"
        assert AGENT.expiration_field == "credentialExpirationDate"
        assert DEVELOPER.issuance_field == "issuanceDate"
        assert DEVELOPER.expiration_field == "expirationDate"

    def test_schema_locations(self) -> None:
        assert AGENT.schema_file == "agent-credential-v1.schema.json"
        assert DEVELOPER.schema_path == "developer/v1/developer-credential-v1.schema.json"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("agent", AGENT),
            ("Agent", AGENT),
            ("AgentCredential", AGENT),
            ("developer", DEVELOPER),
            ("DEVELOPER", DEVELOPER),
            ("developercredential", DEVELOPER),
        ],
    )
    def test_parse(self, value: str, expected: CredentialKind) -> None:
        assert parse_credential_kind(value) is expected

    def test_parse_unknown(self) -> None:
        with pytest.raises(TypeResolutionError, match="Unknown credential type 'issuer'"):
            parse_credential_kind("issuer")

    def test_kind_from_typ(self) -> None:
        assert credential_kind_from_typ(AGENT_TYP) is AGENT
        assert credential_kind_from_typ(DEVELOPER_TYP) is DEVELOPER
        assert credential_kind_from_typ("JWT") is None
        assert credential_kind_from_typ(None) is None


class TestDetect:
    def test_agent_fields(self) -> None:
        assert detect_credential_kind(create_agent_credential()) is AGENT

    def test_developer_fields(self) -> None:
        assert detect_credential_kind(create_developer_credential()) is DEVELOPER

    def test_schema_url_wins(self) -> None:
        document = create_developer_credential(
            **{"$schema": "https://schemas.example.com/agent/v1/agent-credential-v1.schema.json"}
        )
        assert detect_credential_kind(document) is AGENT

    def test_partial_fields_are_not_enough(self) -> None:
        assert detect_credential_kind({"agentName": "x"}) is None
        assert detect_credential_kind({"legalName": "x"}) is None

    @pytest.mark.parametrize("value", [None, [], "agent", 42])
    def test_non_objects(self, value: object) -> None:
        assert detect_credential_kind(value) is None


class TestResolveKind:
    def test_explicit_only(self) -> None:
        assert resolve_kind(explicit=DEVELOPER) is DEVELOPER

    def test_explicit_agrees_with_signals(self) -> None:
        assert resolve_kind(AGENT, AGENT_TYP, AGENT) is AGENT

    def test_explicit_contradicted_by_payload(self) -> None:
        with pytest.raises(TypeResolutionError, match="payload indicates AgentCredential") as exc_info:
            resolve_kind(explicit=DEVELOPER, detected=AGENT)
        assert exc_info.value.signals == {"explicit": "developer", "payload": "agent"}

    def test_explicit_contradicted_by_header(self) -> None:
        with pytest.raises(TypeResolutionError, match="header indicates"):
            resolve_kind(explicit=AGENT, header_typ=DEVELOPER_TYP)

    def test_header_and_payload_disagree(self) -> None:
        with pytest.raises(TypeResolutionError, match="mismatch"):
            resolve_kind(header_typ=AGENT_TYP, detected=DEVELOPER)

    def test_header_only(self) -> None:
        assert resolve_kind(header_typ=DEVELOPER_TYP) is DEVELOPER

    def test_detection_only(self) -> None:
        assert resolve_kind(detected=AGENT) is AGENT

    def test_generic_typ_ignored(self) -> None:
        assert resolve_kind(header_typ="JWT", detected=DEVELOPER) is DEVELOPER

    def test_no_signal(self) -> None:
        with pytest.raises(TypeResolutionError, match="unable to determine"):
            resolve_kind(header_typ="JWT")
