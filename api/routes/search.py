"""
api/routes/search.py -- Site search and project metadata.

Routes:
  GET /api/search?q=   -- up to 5 constructors and 5 drivers matching q
  GET /api/info        -- project name, version, features, endpoint map

Search is a plain case-insensitive substring match with no ranking. Queries
shorter than two characters return an empty result rather than an error.
"""

from __future__ import annotations

import time
from datetime import date

from fastapi import APIRouter, Request

from api.models import SearchResult
from core.pagination import MAX_SEARCH_LENGTH
from stats.store import StatsStore

router = APIRouter(prefix="/api")

APP_VERSION = "1.0.0"
MIN_QUERY_LENGTH = 2

_STARTED = time.monotonic()


@router.get("/search")
def search(request: Request, q: str = "") -> dict:
    term = q.strip().lower()[:MAX_SEARCH_LENGTH]
    if len(term) < MIN_QUERY_LENGTH:
        return {"success": True, "data": [], "message": "Query too short"}

    stats: StatsStore = request.app.state.stats_store
    constructors, drivers = stats.search(term)
    results = [SearchResult.from_constructor(c).dump() for c in constructors]
    results += [SearchResult.from_driver(d).dump() for d in drivers]
    return {"success": True, "count": len(results), "data": results, "query": term}


@router.get("/info")
def info() -> dict:
    return {
        "success": True,
        "data": {
            "project": "F1 Stats",
            "version": APP_VERSION,
            "description": "Formula 1 statistics and management system",
            "features": [
                "Constructor Management",
                "Driver Statistics",
                "Contact Forms",
                "API Endpoints",
                "User Authentication",
                "Favorites System",
                "Admin Notifications",
            ],
            "status": "active",
            "uptime": round(time.monotonic() - _STARTED, 3),
            "lastUpdated": date.today().isoformat(),
            "endpoints": {
                "constructors": "/api/constructors",
                "drivers": "/api/drivers",
                "info": "/api/info",
                "constructorStats": "/api/constructors/stats",
                "search": "/api/search",
                "authStatus": "/api/auth/status",
                "login": "/login",
                "register": "/register",
                "logout": "/logout",
                "contact": "/send-data",
            },
        },
    }
