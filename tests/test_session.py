import json
from types import SimpleNamespace

import pytest

from attendance_log import session as session_module
from attendance_log.errors import AuthError, ConfigError, CredentialError
from attendance_log.session import SCOPES, build_session


@pytest.fixture
def fake_google(monkeypatch):
    """Replace the Google client constructors and record how they were called."""

    calls = {}
    creds = SimpleNamespace(service_account_email="bot@example.iam.gserviceaccount.com")

    def _from_info(info, scopes):
        calls["info"] = info
        calls["scopes"] = scopes
        return creds

    def _authorized_http(credentials, http):
        calls["http"] = http
        return SimpleNamespace(credentials=credentials, http=http)

    def _build(service_name, version, **kwargs):
        calls["build"] = (service_name, version, kwargs)
        return SimpleNamespace(name="sheets-service")

    monkeypatch.setattr(session_module.Credentials, "from_service_account_info", _from_info)
    monkeypatch.setattr(session_module, "AuthorizedHttp", _authorized_http)
    monkeypatch.setattr(session_module, "build", _build)
    return calls


def _write_key(path, content):
    path.write_text(content if isinstance(content, str) else json.dumps(content), encoding="utf-8")


def test_missing_key_raises_config_error(fake_google):
    with pytest.raises(ConfigError):
        build_session({})

    assert "build" not in fake_google


def test_blank_key_raises_config_error(fake_google):
    with pytest.raises(ConfigError):
        build_session({"SA_CREDENTIALS_PATH": "  "})


def test_missing_file_raises_credential_error(tmp_path, fake_google):
    with pytest.raises(CredentialError):
        build_session({"SA_CREDENTIALS_PATH": "nope.json"}, base_dir=tmp_path)


def test_invalid_json_raises_credential_error(tmp_path, fake_google):
    _write_key(tmp_path / "key.json", "{not json")

    with pytest.raises(CredentialError):
        build_session({"SA_CREDENTIALS_PATH": "key.json"}, base_dir=tmp_path)


def test_non_utf8_key_file_raises_credential_error(tmp_path, fake_google):
    (tmp_path / "key.json").write_bytes(b"\xff\xfe\x00garbage")

    with pytest.raises(CredentialError):
        build_session({"SA_CREDENTIALS_PATH": "key.json"}, base_dir=tmp_path)


def test_non_object_json_raises_credential_error(tmp_path, fake_google):
    _write_key(tmp_path / "key.json", ["a", "b"])

    with pytest.raises(CredentialError):
        build_session({"SA_CREDENTIALS_PATH": "key.json"}, base_dir=tmp_path)


def test_incomplete_key_raises_credential_error(tmp_path):
    _write_key(tmp_path / "key.json", {"type": "service_account"})

    with pytest.raises(CredentialError):
        build_session({"SA_CREDENTIALS_PATH": "key.json"}, base_dir=tmp_path)


def test_path_is_resolved_against_working_directory(tmp_path, monkeypatch, fake_google):
    (tmp_path / "secrets").mkdir()
    _write_key(tmp_path / "secrets" / "key.json", {"client_email": "bot@example.com"})
    monkeypatch.chdir(tmp_path)

    session = build_session({"SA_CREDENTIALS_PATH": "secrets/key.json"}, timeout=12.5)

    assert fake_google["info"] == {"client_email": "bot@example.com"}
    assert fake_google["scopes"] == SCOPES
    assert fake_google["http"].timeout == 12.5
    service_name, version, kwargs = fake_google["build"]
    assert (service_name, version) == ("sheets", "v4")
    assert kwargs["cache_discovery"] is False
    assert session.service.name == "sheets-service"
    assert session.timeout == 12.5
    assert session.service_account_email == "bot@example.iam.gserviceaccount.com"


def test_custom_key_name(tmp_path, fake_google):
    _write_key(tmp_path / "key.json", {"client_email": "bot@example.com"})

    session = build_session({"ATTENDANCE_KEY": "key.json"}, key_name="ATTENDANCE_KEY", base_dir=tmp_path)

    assert session.service.name == "sheets-service"


def test_client_construction_failure_raises_auth_error(tmp_path, monkeypatch, fake_google):
    _write_key(tmp_path / "key.json", {"client_email": "bot@example.com"})

    def _broken_build(*args, **kwargs):
        raise RuntimeError("no transport")

    monkeypatch.setattr(session_module, "build", _broken_build)

    with pytest.raises(AuthError):
        build_session({"SA_CREDENTIALS_PATH": "key.json"}, base_dir=tmp_path)
