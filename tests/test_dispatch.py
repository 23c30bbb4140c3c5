import pytest

from canvas_auth.dispatch import USER_APPROVAL_REQUIRED, dispatch_entry, is_allowed_login_url
from canvas_auth.models import BootstrapView, PassThrough


def test_marker_returns_bootstrap(settings):
    out = dispatch_entry("user_approval_required", "https://login.example.com", None, settings)

    assert isinstance(out, BootstrapView)
    assert out.login_url == "https://login.example.com"
    assert out.client_id == settings.CLIENT_ID
    assert out.redirect_url == settings.REDIRECT_URL
    assert out.state is None


def test_other_params_become_state(settings):
    out = dispatch_entry(USER_APPROVAL_REQUIRED, "https://test.salesforce.com", "a=1&b=2", settings)
    assert out.state == "a=1&b=2"


def test_missing_login_url_falls_back_to_default(settings):
    out = dispatch_entry(USER_APPROVAL_REQUIRED, None, None, settings)
    assert out.login_url == settings.DEFAULT_LOGIN_URL


def test_bootstrap_serializes_camel_case(settings):
    out = dispatch_entry(USER_APPROVAL_REQUIRED, "https://login.example.com", "x=y", settings)
    assert out.model_dump(by_alias=True) == {
        "clientId": settings.CLIENT_ID,
        "loginUrl": "https://login.example.com",
        "redirectUrl": settings.REDIRECT_URL,
        "state": "x=y",
    }


@pytest.mark.parametrize(
    "marker",
    [None, "", "USER_APPROVAL_REQUIRED", "user_approval_required ", "approved", 1],
)
def test_anything_else_passes_through(settings, marker):
    out = dispatch_entry(marker, "https://login.example.com", None, settings)

    assert isinstance(out, PassThrough)
    assert out.location == settings.HOME_PATH


@pytest.mark.parametrize(
    "login_url",
    [
        "https://evil.example.net",
        "http://login.salesforce.com",
        "https://login.salesforce.com.evil.net",
        "https://evilsalesforce.com",
        "https://login.salesforce.com@evil.example.net/",
        "javascript:alert(1)",
        "//evil.example.net",
        "",
    ],
)
def test_untrusted_login_url_falls_back_to_default(settings, login_url):
    out = dispatch_entry(USER_APPROVAL_REQUIRED, login_url, None, settings)
    assert out.login_url == settings.DEFAULT_LOGIN_URL


@pytest.mark.parametrize(
    "login_url",
    ["https://test.salesforce.com", "https://acme.my.salesforce.com", "https://acme--dev.sandbox.my.force.com"],
)
def test_login_hosts_on_allow_list_are_kept(settings, login_url):
    out = dispatch_entry(USER_APPROVAL_REQUIRED, login_url, None, settings)
    assert out.login_url == login_url


def test_is_allowed_login_url():
    assert is_allowed_login_url("https://force.com", ["force.com"])
    assert not is_allowed_login_url(None, ["force.com"])
    assert not is_allowed_login_url("https://notforce.com", ["force.com"])
