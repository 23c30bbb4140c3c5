import pytest
from pydantic import ValidationError

from canvas_auth.config import Settings


def test_defaults_have_no_secret(monkeypatch):
    monkeypatch.delenv("CLIENT_SECRET", raising=False)
    s = Settings(_env_file=None)
    assert s.CLIENT_SECRET is None
    assert s.HOME_PATH == "/"


def test_reads_lowercase_environment(monkeypatch):
    monkeypatch.setenv("client_id", "abc")
    monkeypatch.setenv("client_secret", "xyz")
    monkeypatch.setenv("redirect_url", "https://App.Example.com/canvas/callback")

    s = Settings(_env_file=None)
    assert s.CLIENT_ID == "abc"
    assert s.CLIENT_SECRET == "xyz"
    assert s.REDIRECT_URL == "https://app.example.com/canvas/callback"


def test_blank_secret_is_none():
    assert Settings(CLIENT_SECRET="   ").CLIENT_SECRET is None


@pytest.mark.parametrize("url", ["ftp://example.com", "example.com/callback", "https://"])
def test_redirect_url_must_be_absolute_http(url):
    with pytest.raises(ValidationError):
        Settings(REDIRECT_URL=url)


def test_url_keeps_port_and_path():
    s = Settings(DEFAULT_LOGIN_URL=" https://Test.Salesforce.com:8443/base ")
    assert s.DEFAULT_LOGIN_URL == "https://test.salesforce.com:8443/base"


def test_home_path_must_be_local():
    with pytest.raises(ValidationError):
        Settings(HOME_PATH="https://evil.example.com")


def test_max_length_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(MAX_SIGNED_REQUEST_LENGTH=0)


def test_log_level():
    assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(LOG_LEVEL="chatty")


def test_login_host_suffixes_from_comma_string(monkeypatch):
    monkeypatch.setenv("LOGIN_HOST_SUFFIXES", " Salesforce.com, .force.com ,")
    s = Settings(_env_file=None)
    assert s.LOGIN_HOST_SUFFIXES == ["salesforce.com", "force.com"]


@pytest.mark.parametrize("value", ["", " , ", ["https://login.salesforce.com"]])
def test_login_host_suffixes_rejects_empty_or_urls(value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, LOGIN_HOST_SUFFIXES=value)
