"""
api/routes/constructors.py -- Constructor (team) catalog routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /api/constructors            -- paginated; season, team, search, minPoints, maxPoints, fields
  GET    /api/constructors/stats      -- totals and average points
  GET    /api/constructors/{id}       -- one constructor
  POST   /api/constructors            -- create (admin)
  PUT    /api/constructors/{id}       -- replace (admin)
  DELETE /api/constructors/{id}       -- delete (admin)

/stats must be registered before /{constructor_id} or FastAPI tries to parse
"stats" as an integer id and answers 400.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import ConstructorIn, ConstructorOut, PathId
from auth.dependencies import require_admin
from core.errors import NotFoundError, ValidationError
from core.pagination import constructor_filter, normalize, page_envelope, select_fields
from stats.store import StatsStore

router = APIRouter(prefix="/api/constructors")

# Response keys a ?fields= projection may name.
PROJECTABLE_FIELDS = ("id", "position", "team", "color", "drivers", "points", "wins", "podiums", "season")

_REQUIRED_MESSAGE = "Position, team, and drivers are required"


def _complete(body: ConstructorIn) -> ConstructorIn:
    if not body.is_complete():
        raise ValidationError(_REQUIRED_MESSAGE)
    return body


@router.get("")
def list_constructors(request: Request) -> dict:
    query = request.query_params
    params = normalize(query)
    stats: StatsStore = request.app.state.stats_store
    total, rows = stats.list_constructors(constructor_filter(query), params)
    data = [ConstructorOut.from_constructor(c).dump() for c in rows]
    fields = select_fields(query.get("fields"), PROJECTABLE_FIELDS)
    if fields is not None:
        data = [{key: row[key] for key in fields} for row in data]
    return page_envelope(params, total, data)


@router.get("/stats")
def constructor_stats(request: Request) -> dict:
    stats: StatsStore = request.app.state.stats_store
    return {"success": True, "data": stats.constructor_stats()}


@router.get("/{constructor_id}")
def get_constructor(constructor_id: PathId, request: Request) -> dict:
    stats: StatsStore = request.app.state.stats_store
    constructor = stats.get_constructor(constructor_id)
    if constructor is None:
        raise NotFoundError("Constructor not found")
    return {"success": True, "data": ConstructorOut.from_constructor(constructor).dump()}


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
def create_constructor(body: ConstructorIn, request: Request) -> dict:
    constructor = _complete(body).to_constructor()
    stats: StatsStore = request.app.state.stats_store
    constructor.id = stats.create_constructor(constructor)
    return {
        "success": True,
        "data": ConstructorOut.from_constructor(constructor).dump(),
        "message": "Constructor created successfully",
    }


@router.put("/{constructor_id}", dependencies=[Depends(require_admin)])
def update_constructor(constructor_id: PathId, body: ConstructorIn, request: Request) -> dict:
    stats: StatsStore = request.app.state.stats_store
    updated = stats.update_constructor(constructor_id, _complete(body).to_constructor())
    if updated is None:
        raise NotFoundError("Constructor not found")
    return {
        "success": True,
        "data": ConstructorOut.from_constructor(updated).dump(),
        "message": "Constructor updated successfully",
    }


@router.delete("/{constructor_id}", dependencies=[Depends(require_admin)])
def delete_constructor(constructor_id: PathId, request: Request) -> dict:
    stats: StatsStore = request.app.state.stats_store
    if not stats.delete_constructor(constructor_id):
        raise NotFoundError("Constructor not found")
    return {"success": True, "message": "Constructor deleted successfully", "deletedId": constructor_id}
