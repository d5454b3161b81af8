"""Tests for credential parsing and resolution."""

from datetime import datetime, timedelta, timezone

import pytest
import requests

from pax_tunnel.config.credentials import (
    CredentialSource,
    create_from_config,
    parse_credential,
    parse_expiration,
)
from pax_tunnel.config.models import AppConfig, AuthType
from pax_tunnel.utils.exceptions import FetchError, ParseError, ValidationError


SAMPLE_PAYLOAD = {
    "auth_type": "password",
    "host": "1.1.1.1",
    "port": "22",
    "user": "root",
    "password": "secret",
    "exp_at": "2026-01-16 02:45:03",
}


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None, bad_json=False):
        self.payload = payload
        self.status_code = status_code
        self.text = text if text is not None else str(payload)
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeHTTPSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error:
            raise self.error
        return self.response


class TestParseCredential:
    """Tests for parse_credential."""

    def test_password_payload(self):
        credential = parse_credential(SAMPLE_PAYLOAD)

        assert credential.auth_type is AuthType.PASSWORD
        assert credential.host == "1.1.1.1"
        assert credential.port == 22
        assert credential.user == "root"
        assert credential.password == "secret"
        assert credential.private_key is None
        assert credential.expires_at is not None
        assert credential.expires_at.year == 2026

    def test_auth_type_defaults_to_password(self):
        payload = {k: v for k, v in SAMPLE_PAYLOAD.items() if k != "auth_type"}
        assert parse_credential(payload).auth_type is AuthType.PASSWORD

    def test_integer_port_and_metadata(self):
        credential = parse_credential({
            "auth_type": "key",
            "host": "node.example.org",
            "port": 2222,
            "user": "admin",
            "private_key": "~/.ssh/id_ed25519",
            "region": "SG",
            "ref": "https://panel.example.org/nodes/7",
        })

        assert credential.auth_type is AuthType.KEY
        assert credential.port == 2222
        assert credential.region == "SG"
        assert credential.source_ref == "https://panel.example.org/nodes/7"

    def test_missing_password_is_rejected(self):
        payload = {k: v for k, v in SAMPLE_PAYLOAD.items() if k != "password"}
        with pytest.raises(ValidationError):
            parse_credential(payload)

    def test_key_without_private_key_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_credential({"auth_type": "key", "host": "h", "user": "u"})

    def test_unknown_auth_type_is_rejected(self):
        with pytest.raises(ValidationError, match="auth_type"):
            parse_credential({**SAMPLE_PAYLOAD, "auth_type": "kerberos"})

    def test_missing_host_is_rejected(self):
        with pytest.raises(ValidationError, match="host"):
            parse_credential({**SAMPLE_PAYLOAD, "host": ""})

    def test_missing_user_is_rejected(self):
        payload = {k: v for k, v in SAMPLE_PAYLOAD.items() if k != "user"}
        with pytest.raises(ValidationError, match="user"):
            parse_credential(payload)

    @pytest.mark.parametrize("port", ["abc", "0", 70000, True])
    def test_invalid_port_is_rejected(self, port):
        with pytest.raises(ValidationError):
            parse_credential({**SAMPLE_PAYLOAD, "port": port})

    def test_non_string_password_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_credential({**SAMPLE_PAYLOAD, "password": 1234})

    def test_unparsable_expiration_is_ignored(self):
        credential = parse_credential({**SAMPLE_PAYLOAD, "exp_at": "next tuesday"})
        assert credential.expires_at is None

    def test_expires_at_alias(self):
        payload = {k: v for k, v in SAMPLE_PAYLOAD.items() if k != "exp_at"}
        payload["expires_at"] = "2030-05-01T10:00:00Z"
        credential = parse_credential(payload)
        assert credential.expires_at == datetime(2030, 5, 1, 10, 0, tzinfo=timezone.utc)


class TestParseExpiration:
    """Tests for parse_expiration."""

    @pytest.mark.parametrize("value", [
        "2026-01-16 02:45:03",
        "2026-01-16 / 02:45:03",
        "2026-01-16T02:45:03",
        "2026/01/16 02:45:03",
    ])
    def test_local_formats(self, value):
        parsed = parse_expiration(value)
        assert parsed.replace(tzinfo=None) == datetime(2026, 1, 16, 2, 45, 3)
        assert parsed.tzinfo is not None

    def test_rfc3339(self):
        parsed = parse_expiration("2026-01-16T02:45:03+08:00")
        assert parsed.utcoffset() == timedelta(hours=8)
        assert parsed.hour == 2

    def test_bare_date_means_end_of_day(self):
        parsed = parse_expiration("2026-01-16")
        assert (parsed.hour, parsed.minute, parsed.second) == (23, 59, 59)

    @pytest.mark.parametrize("value", [None, "", "soon", "16/01/2026"])
    def test_absent_or_invalid(self, value):
        assert parse_expiration(value) is None


class TestManualMode:
    """Tests for credentials built from local arguments."""

    def test_defaults(self):
        config = AppConfig(host="10.0.0.5", password="pw")
        credential = create_from_config(config)

        assert credential.auth_type is AuthType.PASSWORD
        assert credential.user == "root"
        assert credential.port == 22
        assert credential.region == "Local"
        assert credential.source_ref == "CLI Args"

    def test_private_key_selects_key_auth(self):
        config = AppConfig(host="10.0.0.5", user="deploy", ssh_port=2200, private_key="~/.ssh/id_rsa")
        credential = create_from_config(config)

        assert credential.auth_type is AuthType.KEY
        assert credential.user == "deploy"
        assert credential.port == 2200

    def test_missing_password_is_fatal(self):
        with pytest.raises(ValidationError):
            create_from_config(AppConfig(host="10.0.0.5"))

    def test_resolve_makes_no_request(self):
        session = FakeHTTPSession(error=AssertionError("network used"))
        source = CredentialSource(AppConfig(host="10.0.0.5", password="pw"), session=session)

        assert source.resolve().host == "10.0.0.5"
        assert session.calls == []


class TestApiMode:
    """Tests for fetching credentials from the API."""

    def test_fetch(self, config):
        session = FakeHTTPSession(FakeResponse(SAMPLE_PAYLOAD))
        credential = CredentialSource(config, session=session).resolve()

        assert credential.host == "1.1.1.1"
        assert session.calls == [(config.api_url, config.api_timeout)]

    def test_http_error(self, config):
        session = FakeHTTPSession(FakeResponse(SAMPLE_PAYLOAD, status_code=503))
        with pytest.raises(FetchError):
            CredentialSource(config, session=session).resolve()

    def test_network_error(self, config):
        session = FakeHTTPSession(error=requests.ConnectionError("connection refused"))
        with pytest.raises(FetchError):
            CredentialSource(config, session=session).resolve()

    def test_timeout(self, config):
        session = FakeHTTPSession(error=requests.Timeout("read timed out"))
        with pytest.raises(FetchError):
            CredentialSource(config, session=session).resolve()

    def test_malformed_json(self, config):
        session = FakeHTTPSession(FakeResponse(text="<html>oops</html>", bad_json=True))
        with pytest.raises(ParseError):
            CredentialSource(config, session=session).resolve()

    def test_json_array_is_not_a_credential(self, config):
        session = FakeHTTPSession(FakeResponse([SAMPLE_PAYLOAD]))
        with pytest.raises(ParseError):
            CredentialSource(config, session=session).resolve()

    def test_schema_violation(self, config):
        session = FakeHTTPSession(FakeResponse({"host": "1.1.1.1", "user": "root"}))
        with pytest.raises(ValidationError):
            CredentialSource(config, session=session).resolve()

    def test_local_key_overrides_api_auth(self, config):
        config.private_key = "~/.ssh/id_rsa"
        session = FakeHTTPSession(FakeResponse(SAMPLE_PAYLOAD))
        credential = CredentialSource(config, session=session).resolve()

        assert credential.auth_type is AuthType.KEY
        assert credential.private_key == "~/.ssh/id_rsa"
        assert credential.password == "secret"

    def test_local_key_completes_key_payload_without_secret(self, config):
        config.private_key = "~/.ssh/id_ed25519"
        payload = {"auth_type": "key", "host": "1.1.1.1", "user": "root"}
        session = FakeHTTPSession(FakeResponse(payload))

        credential = CredentialSource(config, session=session).resolve()

        assert credential.auth_type is AuthType.KEY
        assert credential.private_key == "~/.ssh/id_ed25519"
        assert credential.password is None

    def test_local_key_completes_password_payload_without_password(self, config):
        config.private_key = "~/.ssh/id_ed25519"
        session = FakeHTTPSession(FakeResponse({"host": "1.1.1.1", "user": "root"}))

        credential = CredentialSource(config, session=session).resolve()

        assert credential.auth_type is AuthType.KEY
        assert credential.private_key == "~/.ssh/id_ed25519"
        assert credential.target == "root@1.1.1.1:22"

    def test_local_key_does_not_mask_schema_errors(self, config):
        config.private_key = "~/.ssh/id_ed25519"
        session = FakeHTTPSession(FakeResponse({"auth_type": "key", "user": "root"}))

        with pytest.raises(ValidationError, match="host"):
            CredentialSource(config, session=session).resolve()
