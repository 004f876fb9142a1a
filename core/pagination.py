"""
core/pagination.py -- Pagination and filter building shared by every list endpoint.

Three parts:
  normalize()      -- turns raw page/limit query values into a bounded PageParams;
                      select_fields() parses an optional response projection.
  build_filter()   -- turns raw query values into a FilterSpec using a per-endpoint
                      whitelist of searchable, exact-match, and range fields.
  where_clauses()  -- the only SQLAlchemy-aware function here; stores call it to
                      translate a FilterSpec into WHERE clauses for their table.

Route handlers never build WHERE clauses themselves, and column names only
ever come from the whitelists below -- never from the query string.

Bad input is clamped, not rejected: a non-numeric page falls back to the
default, a non-numeric season filter is dropped. Integers are read from their
leading digits (so "3.9" is 3 and "1e3" is 1) and must fit a signed 64-bit
column, so no page, offset, or filter value handed to the database can
overflow. Nothing here raises on user input and NaN can never reach a query.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import Table, and_, or_

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
MAX_SEARCH_LENGTH = 100

# Largest value SQLite (and any BIGINT column) accepts as a bound integer.
MAX_SQL_INT = 2**63 - 1
# Highest page whose offset still fits MAX_SQL_INT at the largest page size.
MAX_PAGE = MAX_SQL_INT // MAX_PAGE_LIMIT

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int
    skip: int


@dataclass
class FilterSpec:
    """Database-agnostic description of a list query's WHERE clause.

    search/search_fields -- OR-combined case-insensitive substring match.
    exact                -- column -> value, ANDed.
    ranges               -- column -> (minimum, maximum); either bound may be None.
    """

    search: Optional[str] = None
    search_fields: tuple[str, ...] = ()
    exact: dict[str, Any] = field(default_factory=dict)
    ranges: dict[str, tuple[Optional[float], Optional[float]]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def to_int(value: Any) -> Optional[int]:
    """Parse the leading integer of value. Returns None for anything unusable.

    Reads digits up to the first non-digit: "3" -> 3, " 7 " -> 7, "3.9" -> 3,
    "1e3" -> 1, "12abc" -> 12. Rejects "", "abc", "nan", booleans, and any
    value outside the signed 64-bit range.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    else:
        match = _LEADING_INT.match(str(value))
        if match is None:
            return None
        try:
            number = int(match.group(1))
        except ValueError:
            # More digits than int() will convert from a string.
            return None
    if not -MAX_SQL_INT <= number <= MAX_SQL_INT:
        return None
    return number


def to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_status(value: Any) -> Optional[bool]:
    """Map the admin list's status filter onto the is_active column."""
    return {"active": True, "disabled": False}.get(str(value).strip().lower()) if value is not None else None


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def normalize(query: Mapping[str, Any]) -> PageParams:
    """Normalize raw page/limit values into a bounded PageParams.

    page:  default 1, floored at 1, capped at MAX_PAGE so skip fits a 64-bit column.
    limit: default 20 (also used for 0 or unparsable input), floored at 1,
           capped at 100.
    skip:  (page - 1) * limit.

    >>> normalize({"page": "-5", "limit": "99999"})
    PageParams(page=1, limit=100, skip=0)
    """
    page = min(max(to_int(query.get("page")) or 1, 1), MAX_PAGE)
    limit = min(max(to_int(query.get("limit")) or DEFAULT_PAGE_LIMIT, 1), MAX_PAGE_LIMIT)
    return PageParams(page=page, limit=limit, skip=(page - 1) * limit)


def select_fields(raw: Any, allowed: Sequence[str]) -> Optional[tuple[str, ...]]:
    """Parse a fields=team,points projection against a whitelist of response keys.

    Names may be separated by commas or spaces; unknown names are dropped. "id"
    is always kept. Returns None (every field) when nothing usable was asked for.

    >>> select_fields("team, points,secret", ("id", "team", "points"))
    ('id', 'team', 'points')
    """
    text = to_text(raw)
    if not text:
        return None
    requested = [name for name in re.split(r"[\s,]+", text) if name in allowed]
    if not requested:
        return None
    return tuple(dict.fromkeys(["id", *requested]))


def page_envelope(params: PageParams, total: int, rows: Sequence[Any]) -> dict:
    """Build the standard list response envelope."""
    return {
        "success": True,
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "pages": math.ceil(total / params.limit) if total else 0,
        "count": len(rows),
        "data": list(rows),
    }


# ---------------------------------------------------------------------------
# Filter building
# ---------------------------------------------------------------------------

# param name -> (column name, converter). A converter returning None drops the filter.
ExactFields = Mapping[str, tuple[str, Callable[[Any], Any]]]
# column name -> (min param name, max param name)
RangeFields = Mapping[str, tuple[str, str]]


def build_filter(
    query: Mapping[str, Any],
    *,
    search_fields: Sequence[str] = (),
    exact: Optional[ExactFields] = None,
    ranges: Optional[RangeFields] = None,
) -> FilterSpec:
    """Assemble a FilterSpec from raw query values and an endpoint whitelist."""
    spec = FilterSpec(search_fields=tuple(search_fields))

    search = to_text(query.get("search"))
    if search and search_fields:
        spec.search = search[:MAX_SEARCH_LENGTH]

    for param, (column, convert) in (exact or {}).items():
        raw = query.get(param)
        if raw is None or raw == "":
            continue
        value = convert(raw)
        if value is not None:
            spec.exact[column] = value

    for column, (min_param, max_param) in (ranges or {}).items():
        low = to_float(query.get(min_param))
        high = to_float(query.get(max_param))
        if low is not None or high is not None:
            spec.ranges[column] = (low, high)

    return spec


def user_filter(query: Mapping[str, Any]) -> FilterSpec:
    """GET /api/admin/users: search username/email, exact role, status."""
    return build_filter(
        query,
        search_fields=("username", "email"),
        exact={"role": ("role", to_text), "status": ("is_active", to_status)},
    )


def constructor_filter(query: Mapping[str, Any]) -> FilterSpec:
    """GET /api/constructors: search team/drivers, season, team, points range."""
    return build_filter(
        query,
        search_fields=("team", "drivers"),
        exact={"season": ("season", to_int), "team": ("team", to_text)},
        ranges={"points": ("minPoints", "maxPoints")},
    )


def driver_filter(query: Mapping[str, Any]) -> FilterSpec:
    """GET /api/drivers: search name/team/nationality, team, season."""
    return build_filter(
        query,
        search_fields=("name", "team", "nationality"),
        exact={"team": ("team", to_text), "season": ("season", to_int)},
    )


# ---------------------------------------------------------------------------
# SQL translation
# ---------------------------------------------------------------------------


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def where_clauses(table: Table, spec: FilterSpec) -> list:
    """Translate a FilterSpec into SQLAlchemy boolean clauses for table.

    Returns a list suitable for select(...).where(*clauses). Every column name
    in the FilterSpec must exist on the table; the whitelists above guarantee that.
    """
    clauses = []
    if spec.search:
        pattern = f"%{_escape_like(spec.search)}%"
        clauses.append(or_(*(table.c[name].ilike(pattern, escape="\\") for name in spec.search_fields)))
    for name, value in spec.exact.items():
        if isinstance(value, bool):
            value = 1 if value else 0
        clauses.append(table.c[name] == value)
    for name, (low, high) in spec.ranges.items():
        bounds = []
        if low is not None:
            bounds.append(table.c[name] >= low)
        if high is not None:
            bounds.append(table.c[name] <= high)
        clauses.append(and_(*bounds))
    return clauses
