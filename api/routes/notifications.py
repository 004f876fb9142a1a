"""
api/routes/notifications.py -- Notification feed and favorites for signed-in users.

Routes:
  GET  /api/notifications        -- paginated admin broadcasts, newest first
  GET  /api/favorites            -- the account's favorite constructors and drivers
  POST /api/favorites/add        -- {type: "team" | "driver", id}
  POST /api/favorites/remove     -- {type: "team" | "driver", id}

All routes require authentication. Favorites are ordered sets stored on the
account: adding an id twice keeps one copy, removing an absent id is a no-op.
Adding checks that the constructor or driver exists; removing does not, so a
favorite whose target was deleted can still be cleared.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import ConstructorOut, FavoriteRequest, NotificationOut
from api.routes.drivers import driver_rows
from auth.dependencies import get_current_user
from auth.models import Account
from auth.store import AccountStore
from core.errors import NotFoundError
from core.pagination import normalize, page_envelope
from stats.store import StatsStore

router = APIRouter(prefix="/api", dependencies=[Depends(get_current_user)])

_FAVORITE_FIELDS = {"team": "favorite_teams", "driver": "favorite_drivers"}


@router.get("/notifications")
def list_notifications(request: Request) -> dict:
    params = normalize(request.query_params)
    stats: StatsStore = request.app.state.stats_store
    total, rows = stats.list_notifications(params)
    return page_envelope(params, total, [NotificationOut.from_notification(n).dump() for n in rows])


@router.get("/favorites")
def list_favorites(request: Request, account: Account = Depends(get_current_user)) -> dict:
    stats: StatsStore = request.app.state.stats_store
    teams = stats.get_constructors_by_ids(account.favorite_teams)
    drivers = stats.get_drivers_by_ids(account.favorite_drivers)
    return {
        "success": True,
        "data": {
            "favoriteTeams": [ConstructorOut.from_constructor(c).dump() for c in teams],
            "favoriteDrivers": driver_rows(stats, drivers),
            "favoritesCount": len(account.favorite_teams) + len(account.favorite_drivers),
        },
    }


@router.post("/favorites/add")
def add_favorite(body: FavoriteRequest, request: Request, account: Account = Depends(get_current_user)) -> dict:
    stats: StatsStore = request.app.state.stats_store
    if body.type == "team" and stats.get_constructor(body.id) is None:
        raise NotFoundError("Constructor not found")
    if body.type == "driver" and stats.get_driver(body.id) is None:
        raise NotFoundError("Driver not found")

    field = _FAVORITE_FIELDS[body.type]
    current = list(getattr(account, field))
    if body.id not in current:
        current.append(body.id)
        store: AccountStore = request.app.state.account_store
        store.update_account(account.id, **{field: current})
        setattr(account, field, current)
    return {"success": True, "message": "Added to favorites"}


@router.post("/favorites/remove")
def remove_favorite(body: FavoriteRequest, request: Request, account: Account = Depends(get_current_user)) -> dict:
    field = _FAVORITE_FIELDS[body.type]
    current = [fav for fav in getattr(account, field) if fav != body.id]
    if len(current) != len(getattr(account, field)):
        store: AccountStore = request.app.state.account_store
        store.update_account(account.id, **{field: current})
        setattr(account, field, current)
    return {"success": True, "message": "Removed from favorites"}
