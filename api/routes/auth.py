"""
api/routes/auth.py -- Login, registration, logout, profile, and session status.

Routes:
  POST /login             -- email + password login; sets session cookie
  POST /register          -- create a role=user account and log it in
  POST /logout            -- destroy session, clear cookie (public, idempotent)
  POST /profile           -- update username/email/password (requires auth)
  GET  /api/auth/status   -- who am I (public)

The four POST routes accept JSON or form posts. wants_json() decides the
response shape: JSON clients get the {success, ...} envelope and error
statuses; browser form posts get 303 redirects, with failures reported as a
?error=<code> query parameter that the page looks up in a fixed whitelist.

Security:
  POST /login and POST /register are rate-limited per IP (LOGIN_RATE_LIMIT).
  Every login rejection is the same 401 bad_credentials, see auth/service.py.
  Login and registration revoke any session the client already presented.
  Cache-Control: no-store on responses that carry a fresh session cookie.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import AuthUser
from auth.dependencies import session_token, try_get_current_user
from auth.models import Account
from auth.service import AuthService
from auth.sessions import clear_session_cookie, set_session_cookie
from core.errors import AppError, AuthenticationError, ValidationError

# Auth policy:
# - POST /login, /register, /logout:  public
# - GET  /api/auth/status:            public (reports anonymous as authenticated=false)
# - POST /profile:                    requires auth (401 for JSON, redirect / for forms)
router = APIRouter()

LOGIN_REDIRECT = "/dashboard"


# ---------------------------------------------------------------------------
# Content negotiation helpers
# ---------------------------------------------------------------------------


def wants_json(request: Request) -> bool:
    """True for XHR, JSON-bodied, or JSON-accepting requests."""
    if request.headers.get("x-requested-with", "").lower() == "xmlhttprequest":
        return True
    if request.headers.get("content-type", "").startswith("application/json"):
        return True
    return "application/json" in request.headers.get("accept", "")


async def read_payload(request: Request) -> dict[str, Any]:
    """Return the request body as a dict, from either JSON or form encoding."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError as exc:
            raise ValidationError("Malformed JSON body") from exc
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def _field(payload: dict[str, Any], *names: str) -> str:
    # Accepts camelCase and snake_case spellings; non-string values count as missing.
    for name in names:
        value = payload.get(name)
        if isinstance(value, str):
            return value
    return ""


def _error_redirect(target: str, exc: AppError) -> RedirectResponse:
    separator = "&" if "?" in target else "?"
    return RedirectResponse(f"{target}{separator}error={quote(exc.code)}", status_code=303)


def _signed_in(request: Request, account: Account, token: str, message: str) -> Response:
    if wants_json(request):
        resp: Response = JSONResponse(
            {
                "success": True,
                "message": message,
                "user": AuthUser.from_account(account).dump(),
                "redirect": LOGIN_REDIRECT,
            }
        )
    else:
        resp = RedirectResponse(LOGIN_REDIRECT, status_code=303)
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Login / register / logout
# ---------------------------------------------------------------------------


@router.post("/login")
@limiter.limit(LOGIN_RATE_LIMIT)  # below @router so the route registers the limited wrapper
async def login(request: Request) -> Response:
    """Authenticate with email and password and start a session."""
    payload = await read_payload(request)
    service: AuthService = request.app.state.auth_service
    try:
        account, token = await run_in_threadpool(
            service.login,
            _field(payload, "email"),
            _field(payload, "password"),
            session_token(request),
        )
    except AppError as exc:
        if wants_json(request):
            raise
        return _error_redirect("/", exc)
    return _signed_in(request, account, token, "Login successful!")


@router.post("/register")
@limiter.limit(LOGIN_RATE_LIMIT)
async def register(request: Request) -> Response:
    """Create an account with role=user, then log it in."""
    payload = await read_payload(request)
    service: AuthService = request.app.state.auth_service
    try:
        account, token = await run_in_threadpool(
            service.register,
            _field(payload, "username"),
            _field(payload, "email"),
            _field(payload, "password"),
            _field(payload, "confirmPassword", "confirm_password"),
            session_token(request),
        )
    except AppError as exc:
        if wants_json(request):
            raise
        return _error_redirect("/", exc)
    return _signed_in(request, account, token, "Registration successful! You are now logged in.")


@router.post("/logout")
def logout(request: Request) -> Response:
    """Destroy the session and clear the cookie. Succeeds without a session too."""
    request.app.state.auth_service.logout(session_token(request))
    if wants_json(request):
        resp: Response = JSONResponse({"success": True, "message": "Logged out successfully"})
    else:
        resp = RedirectResponse("/", status_code=303)
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.post("/profile")
async def update_profile(request: Request) -> Response:
    """Change the signed-in account's username, email, and optionally password."""
    as_json = wants_json(request)
    account = await run_in_threadpool(try_get_current_user, request)
    if account is None:
        if as_json:
            raise AuthenticationError("Authentication required")
        return RedirectResponse("/", status_code=303)

    payload = await read_payload(request)
    service: AuthService = request.app.state.auth_service
    try:
        updated = await run_in_threadpool(
            service.update_profile,
            account,
            _field(payload, "username"),
            _field(payload, "email"),
            _field(payload, "currentPassword", "current_password"),
            _field(payload, "newPassword", "new_password"),
            _field(payload, "confirmNewPassword", "confirm_new_password"),
        )
    except AppError as exc:
        if as_json:
            raise
        return _error_redirect("/dashboard", exc)

    if as_json:
        return JSONResponse(
            {
                "success": True,
                "message": "Profile updated successfully",
                "user": AuthUser.from_account(updated).dump(),
            }
        )
    return RedirectResponse("/dashboard?message=profile_updated", status_code=303)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@router.get("/api/auth/status")
def auth_status(request: Request) -> dict:
    """Report whether the request carries a live session, and for whom."""
    account = try_get_current_user(request)
    if account is None:
        return {"success": True, "authenticated": False}
    return {
        "success": True,
        "authenticated": True,
        "user": {**AuthUser.from_account(account).dump(), "isActive": account.is_active},
    }
