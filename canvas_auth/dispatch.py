# canvas_auth/dispatch.py
#
# Entry dispatch for the framed load. When the host needs the user to approve
# the connected app it loads us with `_sfdc_canvas_auth=user_approval_required`;
# the login page refuses to render inside a frame, so we answer with a
# bootstrap page that opens the OAuth prompt in a popup. Every other request
# goes to the normal, non-embedded entry point.
#
# loginUrl arrives as a plain query parameter and becomes the origin of the
# host SDK <script> and of the OAuth authorize endpoint, so only https URLs on
# configured login hosts are used; anything else gets DEFAULT_LOGIN_URL.

from typing import Iterable, Optional, Union
from urllib.parse import urlparse

from .config import Settings
from .models import BootstrapView, PassThrough

CANVAS_AUTH_PARAM = "_sfdc_canvas_auth"
USER_APPROVAL_REQUIRED = "user_approval_required"


def is_host_dispatched(marker: object) -> bool:
    return isinstance(marker, str) and marker == USER_APPROVAL_REQUIRED


def is_allowed_login_url(login_url: Optional[str], host_suffixes: Iterable[str]) -> bool:
    if not isinstance(login_url, str) or not login_url.strip():
        return False

    try:
        p = urlparse(login_url.strip())
        host = (p.hostname or "").lower()
        # reject credentials in the authority (https://login.salesforce.com@evil/)
        if p.scheme != "https" or not host or p.username or p.password:
            return False
    except ValueError:
        return False

    return any(host == s or host.endswith("." + s) for s in host_suffixes)


def dispatch_entry(
    marker: Optional[str],
    login_url: Optional[str],
    other_params: Optional[str],
    settings: Settings,
) -> Union[BootstrapView, PassThrough]:
    if not is_host_dispatched(marker):
        return PassThrough(location=settings.HOME_PATH)

    if not is_allowed_login_url(login_url, settings.LOGIN_HOST_SUFFIXES):
        login_url = settings.DEFAULT_LOGIN_URL

    return BootstrapView(
        client_id=settings.CLIENT_ID,
        login_url=login_url.strip(),
        redirect_url=settings.REDIRECT_URL,
        state=other_params,
    )
