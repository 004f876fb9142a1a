"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session cookie is the only credential. try_get_current_user() resolves it
once per request and caches the result on request.state, so the middleware in
api/main.py and the route handlers agree on who made the request even if a
handler logs that account out or changes its role mid-request.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises AuthenticationError (401).
require_admin() wraps get_current_user() and raises AuthorizationError (403).

Layer rule: no imports from web/ or stats/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Account
from core.config import get_settings
from core.errors import AuthenticationError, AuthorizationError, SelfActionError


def session_token(request: Request) -> str | None:
    """Return the raw session token from the request cookie, if any."""
    return request.cookies.get(get_settings().session_cookie_name) or None


def try_get_current_user(request: Request) -> Account | None:
    """Resolve the session cookie to an active Account.

    Returns None when there is no cookie, the session is expired or unknown,
    or the account was deleted or disabled. Never raises.
    """
    state = request.state
    if getattr(state, "auth_resolved", False):
        return state.account

    account = request.app.state.auth_service.resolve(session_token(request))
    state.account = account
    state.auth_resolved = True
    return account


def get_current_user(request: Request) -> Account:
    """Require authentication. Raises AuthenticationError if unauthenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: Account = Depends(get_current_user)): ...
    """
    account = try_get_current_user(request)
    if account is None:
        raise AuthenticationError("Authentication required")
    return account


def require_admin(request: Request) -> Account:
    """Require admin role. Raises 401 if unauthenticated, 403 if not admin."""
    account = get_current_user(request)
    if not account.is_admin:
        raise AuthorizationError("Admin access required")
    return account


def ensure_not_self(actor: Account, target_id: int, message: str) -> None:
    """Reject an admin action aimed at the admin's own account."""
    if actor.id == target_id:
        raise SelfActionError(message)
