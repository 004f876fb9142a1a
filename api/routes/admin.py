"""
api/routes/admin.py -- Account administration and notification broadcast.

Routes:
  GET    /api/admin/users                 -- paginated list; search, role, status filters
  PATCH  /api/admin/users/{id}/role       -- set role (user | admin)
  PATCH  /api/admin/users/{id}/status     -- enable / disable (strict boolean isActive)
  DELETE /api/admin/users/{id}            -- delete account
  POST   /api/admin/notifications         -- broadcast a notification (201)
  GET    /api/admin/notifications         -- paginated list, newest first
  GET    /api/admin/contacts              -- contact form messages, newest first

Every route requires role=admin (router-level dependency): 401 when anonymous,
403 when signed in as a regular user.

Self-protection: an admin cannot demote, disable, or delete their own account.
ensure_not_self() runs before the store is touched, so a rejected request
leaves the account exactly as it was.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    AccountOut,
    ContactOut,
    NotificationCreate,
    NotificationOut,
    PathId,
    RoleUpdate,
    StatusUpdate,
)
from auth.dependencies import ensure_not_self, require_admin
from auth.models import Account
from auth.store import AccountStore
from core.errors import NotFoundError, ValidationError
from core.pagination import normalize, page_envelope, user_filter
from stats.models import Notification
from stats.store import StatsStore

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


def _account_or_404(store: AccountStore, account_id: int) -> Account:
    account = store.get_by_id(account_id)
    if account is None:
        raise NotFoundError("User not found")
    return account


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users")
def list_users(request: Request) -> dict:
    query = request.query_params
    params = normalize(query)
    store: AccountStore = request.app.state.account_store
    total, accounts = store.list_accounts(user_filter(query), params)
    return page_envelope(params, total, [AccountOut.from_account(a).dump() for a in accounts])


@router.patch("/users/{account_id}/role")
def update_role(
    account_id: PathId,
    body: RoleUpdate,
    request: Request,
    actor: Account = Depends(require_admin),
) -> dict:
    if body.role != "admin":
        ensure_not_self(actor, account_id, "You cannot remove your own admin role.")
    store: AccountStore = request.app.state.account_store
    _account_or_404(store, account_id)
    store.update_account(account_id, role=body.role)
    return {"success": True, "data": AccountOut.from_account(_account_or_404(store, account_id)).dump()}


@router.patch("/users/{account_id}/status")
def update_status(
    account_id: PathId,
    body: StatusUpdate,
    request: Request,
    actor: Account = Depends(require_admin),
) -> dict:
    if body.is_active is False:
        ensure_not_self(actor, account_id, "You cannot disable your own account.")
    store: AccountStore = request.app.state.account_store
    _account_or_404(store, account_id)
    store.update_account(account_id, is_active=body.is_active)
    return {"success": True, "data": AccountOut.from_account(_account_or_404(store, account_id)).dump()}


@router.delete("/users/{account_id}")
def delete_user(account_id: PathId, request: Request, actor: Account = Depends(require_admin)) -> dict:
    ensure_not_self(actor, account_id, "You cannot delete your own account.")
    store: AccountStore = request.app.state.account_store
    if not store.delete_account(account_id):
        raise NotFoundError("User not found")
    return {"success": True, "message": "User deleted", "deletedId": account_id}


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@router.post("/notifications", status_code=201)
def create_notification(body: NotificationCreate, request: Request, actor: Account = Depends(require_admin)) -> dict:
    if not body.title or not body.message:
        raise ValidationError("Title and message are required")
    stats: StatsStore = request.app.state.stats_store
    notification = stats.create_notification(
        Notification(title=body.title, message=body.message, created_by=actor.id)
    )
    return {"success": True, "data": NotificationOut.from_notification(notification).dump()}


@router.get("/notifications")
def list_notifications(request: Request) -> dict:
    params = normalize(request.query_params)
    stats: StatsStore = request.app.state.stats_store
    total, rows = stats.list_notifications(params)
    return page_envelope(params, total, [NotificationOut.from_notification(n).dump() for n in rows])


# ---------------------------------------------------------------------------
# Contact messages
# ---------------------------------------------------------------------------


@router.get("/contacts")
def list_contacts(request: Request) -> dict:
    params = normalize(request.query_params)
    stats: StatsStore = request.app.state.stats_store
    total, rows = stats.list_contacts(params)
    return page_envelope(params, total, [ContactOut.from_contact(c).dump() for c in rows])
