"""
api/routes/drivers.py -- Driver catalog routes.

Routes:
  GET    /api/drivers          -- paginated, highest points first; team, season, search
                                  each row embeds constructor {id, team, color}
  POST   /api/drivers          -- create (admin); constructor resolved by id, else by team name
  PUT    /api/drivers/{id}     -- update points (admin)
  DELETE /api/drivers/{id}     -- delete (admin)

A driver can only be created for a constructor that already exists. New
drivers start with nationality "Unknown", season 2024, and zero
championships, poles, and starts.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import DriverCreate, DriverOut, DriverPointsUpdate, PathId
from auth.dependencies import require_admin
from core.errors import NotFoundError, ValidationError
from core.pagination import driver_filter, normalize, page_envelope
from stats.models import Driver
from stats.store import StatsStore

router = APIRouter(prefix="/api/drivers")


def driver_rows(stats: StatsStore, rows: list[Driver]) -> list[dict]:
    """Dump drivers with their constructor's team and colour embedded."""
    ids = sorted({d.constructor_id for d in rows if d.constructor_id is not None})
    teams = {c.id: c for c in stats.get_constructors_by_ids(ids)}
    return [DriverOut.from_driver(d, teams.get(d.constructor_id)).dump() for d in rows]


def _summary(driver: Driver) -> dict:
    return {
        "id": driver.id,
        "name": driver.name,
        "team": driver.team,
        "points": driver.points,
        "wins": driver.wins,
        "podiums": driver.podiums,
    }


@router.get("")
def list_drivers(request: Request) -> dict:
    query = request.query_params
    params = normalize(query)
    stats: StatsStore = request.app.state.stats_store
    total, rows = stats.list_drivers(driver_filter(query), params)
    return page_envelope(params, total, driver_rows(stats, rows))


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
def create_driver(body: DriverCreate, request: Request) -> dict:
    if not body.name or not body.team:
        raise ValidationError("Name and team are required")

    stats: StatsStore = request.app.state.stats_store
    if body.constructor_id is not None:
        constructor = stats.get_constructor(body.constructor_id)
    else:
        constructor = stats.get_constructor_by_team(body.team)
    if constructor is None:
        raise ValidationError("Constructor not found. Create the constructor first.")

    driver = Driver(
        name=body.name,
        team=body.team,
        constructor_id=constructor.id,
        points=body.points or 0,
        wins=body.wins or 0,
        podiums=body.podiums or 0,
    )
    driver.id = stats.create_driver(driver)
    return {"success": True, "data": _summary(driver), "message": "Driver created successfully"}


@router.put("/{driver_id}", dependencies=[Depends(require_admin)])
def update_driver_points(driver_id: PathId, body: DriverPointsUpdate, request: Request) -> dict:
    if body.points is None:
        raise ValidationError("Points are required")
    stats: StatsStore = request.app.state.stats_store
    updated = stats.update_driver_points(driver_id, body.points)
    if updated is None:
        raise NotFoundError("Driver not found")
    return {"success": True, "data": _summary(updated), "message": "Driver updated successfully"}


@router.delete("/{driver_id}", dependencies=[Depends(require_admin)])
def delete_driver(driver_id: PathId, request: Request) -> dict:
    stats: StatsStore = request.app.state.stats_store
    if not stats.delete_driver(driver_id):
        raise NotFoundError("Driver not found")
    return {"success": True, "message": "Driver deleted successfully", "deletedId": driver_id}
