"""
web/routes.py -- Jinja2 template routes for the F1 Stats web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same stores and auth service) but return HTML instead of JSON. Data
tables on the pages are filled in by the browser from the /api/* endpoints.

Routes:
  GET /                     -- home page (public)
  GET /constructorsPage     -- constructors standings (public)
  GET /driversPage          -- drivers standings (public)
  GET /dashboard            -- favorites and profile form (auth required)
  GET /admin                -- account administration (admin only)
  GET /constructor-manager  -- constructor and driver editing (admin only)
  GET /login                -- redirects to / (the login form lives on the home page)

render_http_error() renders unknown pages as an HTML 404; asgi.py routes every
non-API HTTP error to it.

Auth failures on pages never produce JSON: an anonymous visitor is redirected
to /, a signed-in non-admin on an admin page gets a 403 "Access denied" page.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth.dependencies import try_get_current_user
from stats.store import StatsStore

logger = logging.getLogger("f1stats.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# Expose try_get_current_user as a Jinja2 global so layout.html can render the
# signed-in navigation without every handler passing the account in.
templates.env.globals["try_get_current_user"] = try_get_current_user
router = APIRouter()

# ---------------------------------------------------------------------------
# Message whitelists
# ---------------------------------------------------------------------------

# ?error= and ?message= values are looked up here. The raw query parameter is
# NEVER passed to templates, only the mapped message. Prevents reflected XSS
# via crafted query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
    "validation_error": "Please check the form and try again.",
    "conflict": "That username or email is already taken.",
    "rate_limited": "Too many attempts. Please wait a minute and try again.",
    "internal_error": "Something went wrong. Please try again.",
}

_SUCCESS_MESSAGES: dict[str, str] = {
    "profile_updated": "Profile updated successfully",
}


def _flash(request: Request) -> dict[str, Optional[str]]:
    error = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    message = _SUCCESS_MESSAGES.get(request.query_params.get("message", ""))
    return {"error": error, "message": message}


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to / if the request is not authenticated, else None.

    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_current_user(request) is None:
        return RedirectResponse("/", status_code=302)
    return None


def _require_admin(request: Request) -> Optional[Union[RedirectResponse, HTMLResponse]]:
    """Redirect anonymous visitors to /; render 403 for signed-in non-admins."""
    if redirect := _require_auth(request):
        return redirect
    account = try_get_current_user(request)
    if not account.is_admin:
        logger.info("Account %s denied admin page %s", account.id, request.url.path)
        return templates.TemplateResponse(
            request, "error.html", {"title": "Access denied", "detail": "Access denied"}, status_code=403
        )
    return None


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html", _flash(request))


@router.get("/constructorsPage", response_class=HTMLResponse)
def constructors_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "constructors.html", {})


@router.get("/driversPage", response_class=HTMLResponse)
def drivers_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "drivers.html", {})


@router.get("/login", include_in_schema=False)
def login_page() -> RedirectResponse:
    return RedirectResponse("/", status_code=302)


# ---------------------------------------------------------------------------
# Signed-in pages
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request):
    """Favorite constructors (by position) and drivers (by points), plus the profile form."""
    if redirect := _require_auth(request):
        return redirect
    account = try_get_current_user(request)
    stats: StatsStore = request.app.state.stats_store
    context = {
        "account": account,
        "favorite_teams": stats.get_constructors_by_ids(account.favorite_teams),
        "favorite_drivers": stats.get_drivers_by_ids(account.favorite_drivers),
        "favorites_count": len(account.favorite_teams) + len(account.favorite_drivers),
        **_flash(request),
    }
    return templates.TemplateResponse(request, "dashboard.html", context)


@router.get("/admin", response_class=HTMLResponse)
def admin_page(request: Request):
    if denied := _require_admin(request):
        return denied
    return templates.TemplateResponse(request, "admin.html", {})


@router.get("/constructor-manager", response_class=HTMLResponse)
def constructor_manager(request: Request):
    if denied := _require_admin(request):
        return denied
    return templates.TemplateResponse(request, "constructor_manager.html", {})


# ---------------------------------------------------------------------------
# HTTP errors outside /api/
# ---------------------------------------------------------------------------

_HTTP_ERROR_PAGES: dict[int, tuple[str, str]] = {
    404: ("Page Not Found", "The page you are looking for does not exist."),
    405: ("Method Not Allowed", "That action is not available on this page."),
}


def render_http_error(request: Request, exc: StarletteHTTPException) -> HTMLResponse:
    """Render error.html for a routing or HTTP error raised outside the API."""
    title, detail = _HTTP_ERROR_PAGES.get(exc.status_code, ("Error", "Something went wrong."))
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": title, "detail": detail, "current_url": request.url.path},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )
