# canvas_auth/main.py
#
# -----------------------------------------------------------------------------
# Architectural notes (high level)
# -----------------------------------------------------------------------------
# This file is intentionally "thin" orchestration glue:
#   - It wires HTTP endpoints to the domain primitives implemented elsewhere.
#   - It MUST NOT implement crypto itself (crypto lives in signed_request.py +
#     verifier.py).
#   - It keeps no per-user state; nothing here survives a request.
#
# Key modules / responsibilities:
#   - config.py          : environment-driven settings (client id/secret, URLs)
#   - dispatch.py        : framed-load routing (bootstrap page vs pass-through)
#   - signed_request.py  : signed request wire format + HMAC primitive
#   - verifier.py        : accept/reject gate for signed requests
#   - audit.py           : append-only audit log (security telemetry, forensics)
#
# Flow:
#   1. Host loads GET /canvas?_sfdc_canvas_auth=user_approval_required&loginUrl=...
#      inside its frame. We return the bootstrap page which opens the OAuth
#      prompt in a popup (login pages refuse to be framed).
#   2. The popup ends at GET /canvas/callback, which just closes itself.
#   3. The host re-posts the frame with a `signed_request` form field to
#      POST /canvas. We verify it and hand the claims to the display page.
# -----------------------------------------------------------------------------

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from .audit import AuditLog, build_common
from .config import Settings, settings as default_settings
from .dispatch import CANVAS_AUTH_PARAM, dispatch_entry
from .errors import VerificationErrorKind, VerifierNotConfigured
from .logging_config import configure_logging
from .models import PassThrough
from .verifier import SignedRequestVerifier, VerificationResult

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

# -----------------------------------------------------------------------------
# Failure -> HTTP mapping
# -----------------------------------------------------------------------------
# Signature mismatch is an authorization failure; everything else is a bad
# request. Reasons are surfaced verbatim so clients can tell them apart.
_STATUS_FOR_KIND = {
    VerificationErrorKind.MISSING_INPUT: 400,
    VerificationErrorKind.MALFORMED_ENVELOPE: 400,
    VerificationErrorKind.UNSUPPORTED_ALGORITHM: 400,
    VerificationErrorKind.SIGNATURE_MISMATCH: 403,
}


def _fail(result: VerificationResult):
    status = _STATUS_FOR_KIND[result.error]
    raise HTTPException(
        status_code=status,
        detail={
            "error": "bad_request" if status == 400 else "not_authorized",
            "reason": result.error.value,
            "message": result.message,
        },
    )


def _sdk_url(login_url: str, version: str) -> str:
    return f"{login_url.rstrip('/')}/canvas/sdk/js/{version}/canvas-all.js"


def _claim_ids(envelope: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Best-effort user/org ids for logs; the claims are otherwise opaque here."""
    context = envelope.get("context")
    context = context if isinstance(context, dict) else {}
    user = context.get("user") if isinstance(context.get("user"), dict) else {}
    org = context.get("organization") if isinstance(context.get("organization"), dict) else {}

    user_id = envelope.get("userId") or envelope.get("user_id") or user.get("userId")
    org_id = org.get("organizationId")
    return (str(user_id) if user_id else None, str(org_id) if org_id else None)


# -----------------------------------------------------------------------------
# FastAPI application
# -----------------------------------------------------------------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Canvas Signed Request Auth",
        version="0.1.0",
    )
    app.state.settings = settings

    # Architectural rule: no secret -> no verifier. The embedded entry point
    # still works, but POST /canvas answers 503 instead of running with an
    # empty key.
    try:
        app.state.verifier = SignedRequestVerifier.from_settings(settings)
    except VerifierNotConfigured:
        logger.warning("CLIENT_SECRET is not set; signed request verification is disabled")
        app.state.verifier = None

    app.state.audit = AuditLog(settings.AUDIT_DIR) if settings.AUDIT_ENABLED else None

    app.mount(
        "/static",
        StaticFiles(directory=str(BASE_DIR / "static")),
        name="static",
    )

    def _audit(
        request: Request,
        signed_request: Optional[str],
        outcome: str,
        reason: str,
        *,
        user_id: Optional[str] = None,
        org_id: Optional[str] = None,
        **extra,
    ):
        audit = request.app.state.audit
        if audit is None:
            return

        audit.append(
            {
                **build_common(
                    signed_request=signed_request,
                    user_id=user_id,
                    org_id=org_id,
                    request_ip=(request.client.host if request.client else None),
                    user_agent=request.headers.get("user-agent"),
                ),
                "result": outcome,
                "reason": reason,
                **extra,
            }
        )

    # -------------------------------------------------------------------------
    # Non-embedded entry point
    # -------------------------------------------------------------------------
    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        return templates.TemplateResponse(request, "home.html")

    @app.get("/healthz")
    def healthz(request: Request):
        return {"ok": True, "verifier_configured": request.app.state.verifier is not None}

    # -------------------------------------------------------------------------
    # Canvas OAuth entry (framed load)
    # -------------------------------------------------------------------------
    @app.get("/canvas")
    def canvas_entry(
        request: Request,
        login_url: Optional[str] = Query(None, alias="loginUrl"),
        canvas_auth: Optional[str] = Query(None, alias=CANVAS_AUTH_PARAM),
        other_params: Optional[str] = Query(None, alias="otherParams"),
    ):
        outcome = dispatch_entry(canvas_auth, login_url, other_params, request.app.state.settings)

        if isinstance(outcome, PassThrough):
            # request didn't come from the host frame
            return RedirectResponse(url=outcome.location, status_code=303)

        logger.info("canvas approval required; serving bootstrap (loginUrl=%s)", outcome.login_url)
        return templates.TemplateResponse(
            request,
            "canvas_index.html",
            {
                "view_json": outcome.model_dump(by_alias=True),
                "sdk_url": _sdk_url(outcome.login_url, request.app.state.settings.CANVAS_SDK_VERSION),
            },
        )

    # -------------------------------------------------------------------------
    # Signed request (end of the canvas OAuth flow)
    # -------------------------------------------------------------------------
    @app.post("/canvas", response_class=HTMLResponse)
    def canvas_signed_request(
        request: Request,
        signed_request: Optional[str] = Form(None),
    ):
        verifier = request.app.state.verifier
        if verifier is None:
            raise HTTPException(
                status_code=503,
                detail={
                    "error": "not_configured",
                    "reason": "client_secret_missing",
                    "message": "Signed request verification is not configured.",
                },
            )

        try:
            result = verifier.verify(signed_request)
        except Exception as e:
            logger.exception("signed request verifier failed")
            _audit(
                request,
                signed_request,
                "denied",
                "verifier_exception",
                detail=f"{type(e).__name__}: {e!s}"[:200],
            )
            raise HTTPException(
                status_code=500,
                detail={
                    "error": "verifier_error",
                    "reason": "verifier_exception",
                    "message": "Signed request could not be verified.",
                },
            )

        if not result.ok:
            _audit(request, signed_request, "denied", result.error.value)
            logger.warning("signed request rejected: %s", result.error.value)
            _fail(result)

        user_id, org_id = _claim_ids(result.envelope)
        _audit(request, signed_request, "approved", "signature_valid", user_id=user_id, org_id=org_id)
        logger.info("signed request verified (user=%s org=%s)", user_id, org_id)

        # if you've reached this point the user is authenticated
        return templates.TemplateResponse(
            request,
            "display_result.html",
            {
                "claims_json": json.dumps(result.envelope, indent=2, sort_keys=True),
            },
        )

    # -------------------------------------------------------------------------
    # OAuth popup callback
    # -------------------------------------------------------------------------
    # Called from the popped window, not the framed one. It only has to close
    # itself; the frame then asks the host to resend the signed request.
    @app.get("/canvas/callback", response_class=HTMLResponse)
    def canvas_callback(request: Request):
        s = request.app.state.settings
        return templates.TemplateResponse(
            request,
            "callback.html",
            {"sdk_url": _sdk_url(s.DEFAULT_LOGIN_URL, s.CANVAS_SDK_VERSION)},
        )

    return app


app = create_app()
