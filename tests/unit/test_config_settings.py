import dataclasses

import pytest

from scim_suite.config import settings
from scim_suite.config.settings import is_oem_value, load_environment, load_settings, resolve_environment
from scim_suite.core.endpoints import EndpointType
from scim_suite.core.exceptions import ConfigurationError


@pytest.mark.parametrize("value", ["true", "TRUE", "True", "1", "yes", "YES", "oem", "Oem", " true "])
def test_oem_values_select_oem_profile(value):
    profile = resolve_environment({"OEM": value})
    assert profile.name == settings.OEM
    assert profile.is_oem


@pytest.mark.parametrize("value", ["", "false", "0", "no", "off", "2", "oem-ish"])
def test_other_values_select_non_oem_profile(value):
    profile = resolve_environment({"OEM": value})
    assert profile.name == settings.NON_OEM
    assert not profile.is_oem


def test_absent_oem_defaults_to_non_oem():
    assert resolve_environment({}) is settings.ENVIRONMENT_PROFILES["nonOem"]


def test_oem_profile_carries_default_institution():
    profile = resolve_environment({"OEM": "true"})
    assert profile.institution_id == "103"
    assert profile.db_name == "LocalOBTestingTwo"


def test_resolve_reads_process_environment(monkeypatch):
    monkeypatch.setenv("OEM", "yes")
    assert resolve_environment().is_oem


def test_explicit_variables_override_profile_fields():
    profile = resolve_environment({
        "OEM": "1",
        "DB_SERVER": "SQLHOST\\INST",
        "DB_PASSWORD": "pw",
        "INSTITUTION_ID": " 102 ",
    })
    assert profile.db_server == "SQLHOST\\INST"
    assert profile.db_password == "pw"
    assert profile.institution_id == "102"
    # Static table is untouched
    assert settings.ENVIRONMENT_PROFILES["oem"].institution_id == "103"


@pytest.mark.parametrize("oem, expected_host", [("true", "rdv-009275"), ("false", "rdv-010318")])
def test_profile_hosts_ignore_url_variables(oem, expected_host):
    other_host = "rdv-010318" if expected_host == "rdv-009275" else "rdv-009275"
    cfg = load_settings({
        "OEM": oem,
        "API_BASE_URL": f"https://{other_host}.hylandqa.net",
        "OAUTH_BASE_URL": f"https://{other_host}.hylandqa.net/identityservice",
    })
    assert cfg.api_base_url == f"https://{expected_host}.hylandqa.net"
    assert cfg.token_url == f"https://{expected_host}.hylandqa.net/identityservice/connect/token"


def test_institution_id_ignored_outside_oem():
    profile = resolve_environment({"INSTITUTION_ID": "102"})
    assert profile.institution_id is None


def test_profile_is_immutable():
    profile = resolve_environment({})
    with pytest.raises(dataclasses.FrozenInstanceError):
        profile.name = settings.OEM


def test_password_not_in_repr():
    profile = resolve_environment({"DB_PASSWORD": "hunter2"})
    assert "hunter2" not in repr(profile)


@pytest.mark.parametrize("value", ["true", "1", "yes", "oem", "OEM"])
def test_is_oem_value(value):
    assert is_oem_value(value)


def test_is_oem_value_handles_none():
    assert not is_oem_value(None)


class TestLoadSettings:
    def test_defaults(self):
        cfg = load_settings({})
        assert cfg.profile.name == settings.NON_OEM
        assert cfg.endpoint_type is EndpointType.SCIM
        assert cfg.oauth.token_endpoint == "/connect/token"
        assert cfg.oauth.scope == "idpadmin"
        assert cfg.oauth.grant_type == "client_credentials"
        assert cfg.api_timeout == 30.0
        assert cfg.request_timeout == 10.0
        assert cfg.strict_response_time is False
        assert cfg.verify_tls is False

    def test_endpoint_type_prefers_endpoint_type_variable(self):
        cfg = load_settings({"ENDPOINT_TYPE": "apiserver", "API_ENDPOINT_TYPE": "scim"})
        assert cfg.endpoint_type is EndpointType.APISERVER

    def test_endpoint_type_falls_back_to_api_endpoint_type(self):
        cfg = load_settings({"API_ENDPOINT_TYPE": "APISERVER"})
        assert cfg.endpoint_type is EndpointType.APISERVER

    def test_invalid_endpoint_type_is_rejected(self):
        with pytest.raises(ConfigurationError, match="Invalid API_ENDPOINT_TYPE"):
            load_settings({"ENDPOINT_TYPE": "graphql"})

    def test_client_credentials_aliases(self):
        cfg = load_settings({"OAUTH_CLIENT_ID": "svc", "OAUTH_CLIENT_SECRET": "s3cret"})
        assert cfg.oauth.client_id == "svc"
        assert cfg.oauth.client_secret == "s3cret"
        assert cfg.missing_required() == []

    def test_primary_credential_names_win(self):
        cfg = load_settings({"CLIENT_ID": "primary", "OAUTH_CLIENT_ID": "alias"})
        assert cfg.oauth.client_id == "primary"

    def test_missing_required(self):
        assert load_settings({}).missing_required() == ["CLIENT_ID", "CLIENT_SECRET"]

    def test_ensure_complete_lists_missing_settings(self):
        with pytest.raises(ConfigurationError, match="CLIENT_ID, CLIENT_SECRET"):
            load_settings({}).ensure_complete()

    def test_ensure_complete_passes_with_credentials(self):
        load_settings({"CLIENT_ID": "suite", "CLIENT_SECRET": "s3cret"}).ensure_complete()

    def test_token_url_uses_profile_oauth_base(self):
        cfg = load_settings({"OEM": "true"})
        assert cfg.token_url == "https://rdv-009275.hylandqa.net/identityservice/connect/token"

    def test_token_endpoint_override(self):
        cfg = load_settings({"OAUTH_TOKEN_ENDPOINT": "/oauth/token"})
        assert cfg.token_url == "https://rdv-010318.hylandqa.net/identityservice/oauth/token"

    def test_scim_base_url_follows_endpoint_type(self):
        cfg = load_settings({"ENDPOINT_TYPE": "apiserver"})
        assert cfg.scim_base_url == "https://rdv-010318.hylandqa.net/ApiServer/onbase/SCIM/v2"

    def test_endpoint_path_override(self):
        cfg = load_settings({"API_SCIM_ENDPOINT": "/custom/v2"})
        assert cfg.endpoint_path == "/custom/v2"

    def test_timeouts_are_milliseconds(self):
        cfg = load_settings({"API_TIMEOUT": "45000", "REQUEST_TIMEOUT": "2500"})
        assert cfg.api_timeout == 45.0
        assert cfg.request_timeout == 2.5

    def test_invalid_timeout(self):
        with pytest.raises(ConfigurationError, match="API_TIMEOUT"):
            load_settings({"API_TIMEOUT": "soon"})

    def test_flags(self):
        cfg = load_settings({"STRICT_RESPONSE_TIME": "true", "VERIFY_TLS": "1", "SCIM_DB_CHECKS": "yes"})
        assert cfg.strict_response_time
        assert cfg.verify_tls
        assert cfg.db_checks_enabled

    def test_describe_masks_secret(self):
        cfg = load_settings({"CLIENT_ID": "svc", "CLIENT_SECRET": "s3cret"})
        summary = cfg.describe()
        assert summary["client_secret"] == "[SET]"
        assert "s3cret" not in str(summary)
        assert summary["environment"] == settings.NON_OEM


def test_load_environment_merges_dotenv_under_process_env(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("OEM=true\nDB_NAME=FromFile\nCLIENT_ID=file-client\n")
    monkeypatch.delenv("OEM", raising=False)
    monkeypatch.delenv("CLIENT_ID", raising=False)
    monkeypatch.setenv("DB_NAME", "FromProcess")

    merged = load_environment(env_file)
    assert merged["OEM"] == "true"
    assert merged["CLIENT_ID"] == "file-client"
    assert merged["DB_NAME"] == "FromProcess"


def test_load_settings_reads_dotenv_file(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("ENDPOINT_TYPE=apiserver\n")
    monkeypatch.delenv("ENDPOINT_TYPE", raising=False)
    monkeypatch.delenv("API_ENDPOINT_TYPE", raising=False)

    cfg = load_settings(dotenv_path=env_file)
    assert cfg.endpoint_type is EndpointType.APISERVER


def test_missing_dotenv_file_is_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("CLIENT_ID", "from-env")
    merged = load_environment(tmp_path / "absent.env")
    assert merged["CLIENT_ID"] == "from-env"
