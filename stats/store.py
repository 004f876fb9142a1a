"""
stats/store.py -- SQLAlchemy-backed persistence for constructors, drivers, notifications,
and contact messages.

Uses SQLAlchemy Core (not ORM) so the dataclasses in stats/models.py remain the
authoritative domain representation. The engine setup (WAL, check_same_thread)
is shared with auth/store.py through make_engine().

Pattern: Repository + Data Mapper. StatsStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL. List filters
arrive as a core.pagination.FilterSpec built from per-endpoint whitelists.

Usage:
    store = StatsStore()
    constructor_id = store.create_constructor(Constructor(position=1, team="Red Bull", drivers="..."))
    total, page = store.list_constructors(constructor_filter(query), normalize(query))
    store.close()
"""

from typing import Optional, Sequence

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.store import make_engine, now_iso
from core.config import get_settings
from core.pagination import FilterSpec, PageParams, where_clauses
from stats.models import DEFAULT_COLOR, DEFAULT_SEASON, Constructor, Contact, Driver, Notification

SEARCH_RESULT_LIMIT = 5

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

constructors = Table(
    "constructors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("position", Integer, nullable=False),
    Column("team", String(100), nullable=False),
    Column("color", String(20), nullable=False, server_default=DEFAULT_COLOR),
    Column("drivers", Text, nullable=False),
    Column("points", Float, nullable=False, server_default="0"),
    Column("wins", Integer, nullable=False, server_default="0"),
    Column("podiums", Integer, nullable=False, server_default="0"),
    Column("season", Integer, nullable=False, server_default=str(DEFAULT_SEASON)),
)

drivers = Table(
    "drivers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("team", String(100), nullable=False),
    Column("constructor_id", Integer, index=True),  # weak reference to constructors.id
    Column("nationality", String(60), nullable=False, server_default="Unknown"),
    Column("points", Float, nullable=False, server_default="0"),
    Column("wins", Integer, nullable=False, server_default="0"),
    Column("podiums", Integer, nullable=False, server_default="0"),
    Column("championships", Integer, nullable=False, server_default="0"),
    Column("season", Integer, nullable=False, server_default=str(DEFAULT_SEASON)),
    Column("pole_positions", Integer, nullable=False, server_default="0"),
    Column("starts", Integer, nullable=False, server_default="0"),
    Column("image_url", Text),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("message", Text, nullable=False),
    Column("created_by", Integer),
    Column("created_at", String(32), nullable=False),
)

contacts = Table(
    "contacts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, server_default=""),
    Column("email", String(255), nullable=False, server_default=""),
    Column("number", String(30), nullable=False, server_default=""),
    Column("message", Text, nullable=False),
    Column("submitted_by", Integer),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class StatsStore:
    """Repository for Constructor, Driver, Notification, and Contact entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    def create_constructor(self, constructor: Constructor) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(constructors.insert().values(**_constructor_values(constructor)))
            conn.commit()
            return result.inserted_primary_key[0]

    def get_constructor(self, constructor_id: int) -> Optional[Constructor]:
        with self.engine.connect() as conn:
            row = conn.execute(constructors.select().where(constructors.c.id == constructor_id)).fetchone()
        return _row_to_constructor(row) if row is not None else None

    def get_constructor_by_team(self, team: str) -> Optional[Constructor]:
        """Exact team-name lookup used to attach new drivers to their constructor."""
        with self.engine.connect() as conn:
            row = conn.execute(
                constructors.select().where(constructors.c.team == team).order_by(constructors.c.id)
            ).fetchone()
        return _row_to_constructor(row) if row is not None else None

    def get_constructors_by_ids(self, ids: Sequence[int]) -> list[Constructor]:
        """Return the constructors whose id is in ids, ordered by championship position."""
        if not ids:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                constructors.select().where(constructors.c.id.in_(list(ids))).order_by(constructors.c.position)
            ).fetchall()
        return [_row_to_constructor(r) for r in rows]

    def list_constructors(self, spec: FilterSpec, params: PageParams) -> tuple[int, list[Constructor]]:
        """Return (total matching, one page) ordered by championship position."""
        clauses = where_clauses(constructors, spec)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(constructors).where(*clauses)).scalar() or 0
            rows = conn.execute(
                constructors.select()
                .where(*clauses)
                .order_by(constructors.c.position, constructors.c.id)
                .offset(params.skip)
                .limit(params.limit)
            ).fetchall()
        return total, [_row_to_constructor(r) for r in rows]

    def update_constructor(self, constructor_id: int, constructor: Constructor) -> Optional[Constructor]:
        """Replace every editable field. Returns the updated row, or None if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                constructors.update()
                .where(constructors.c.id == constructor_id)
                .values(**_constructor_values(constructor))
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_constructor(constructor_id)

    def delete_constructor(self, constructor_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(constructors.delete().where(constructors.c.id == constructor_id))
            conn.commit()
        return result.rowcount > 0

    def constructor_stats(self) -> dict:
        """Aggregate totals over every constructor row."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(
                    func.count(constructors.c.id),
                    func.coalesce(func.sum(constructors.c.points), 0),
                    func.coalesce(func.sum(constructors.c.wins), 0),
                    func.coalesce(func.sum(constructors.c.podiums), 0),
                )
            ).fetchone()
        count, points, wins, podiums = row
        return {
            "totalConstructors": count,
            "totalPoints": points,
            "totalWins": wins,
            "totalPodiums": podiums,
            "averagePoints": points / count if count else 0,
        }

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def create_driver(self, driver: Driver) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                drivers.insert().values(
                    name=driver.name,
                    team=driver.team,
                    constructor_id=driver.constructor_id,
                    nationality=driver.nationality,
                    points=driver.points,
                    wins=driver.wins,
                    podiums=driver.podiums,
                    championships=driver.championships,
                    season=driver.season,
                    pole_positions=driver.pole_positions,
                    starts=driver.starts,
                    image_url=driver.image_url,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_driver(self, driver_id: int) -> Optional[Driver]:
        with self.engine.connect() as conn:
            row = conn.execute(drivers.select().where(drivers.c.id == driver_id)).fetchone()
        return _row_to_driver(row) if row is not None else None

    def get_drivers_by_ids(self, ids: Sequence[int]) -> list[Driver]:
        """Return the drivers whose id is in ids, highest points first."""
        if not ids:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                drivers.select().where(drivers.c.id.in_(list(ids))).order_by(drivers.c.points.desc())
            ).fetchall()
        return [_row_to_driver(r) for r in rows]

    def list_drivers(self, spec: FilterSpec, params: PageParams) -> tuple[int, list[Driver]]:
        """Return (total matching, one page) highest points first."""
        clauses = where_clauses(drivers, spec)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(drivers).where(*clauses)).scalar() or 0
            rows = conn.execute(
                drivers.select()
                .where(*clauses)
                .order_by(drivers.c.points.desc(), drivers.c.id)
                .offset(params.skip)
                .limit(params.limit)
            ).fetchall()
        return total, [_row_to_driver(r) for r in rows]

    def update_driver_points(self, driver_id: int, points: float) -> Optional[Driver]:
        with self.engine.connect() as conn:
            result = conn.execute(drivers.update().where(drivers.c.id == driver_id).values(points=points))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_driver(driver_id)

    def delete_driver(self, driver_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(drivers.delete().where(drivers.c.id == driver_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, term: str, limit: int = SEARCH_RESULT_LIMIT) -> tuple[list[Constructor], list[Driver]]:
        """Case-insensitive substring match over constructors and drivers.

        Returns at most limit of each, in storage order. No relevance ranking.
        """
        c_spec = FilterSpec(search=term, search_fields=("team", "drivers"))
        d_spec = FilterSpec(search=term, search_fields=("name", "team", "nationality"))
        with self.engine.connect() as conn:
            c_rows = conn.execute(
                constructors.select().where(*where_clauses(constructors, c_spec)).order_by(constructors.c.id).limit(limit)
            ).fetchall()
            d_rows = conn.execute(
                drivers.select().where(*where_clauses(drivers, d_spec)).order_by(drivers.c.id).limit(limit)
            ).fetchall()
        return [_row_to_constructor(r) for r in c_rows], [_row_to_driver(r) for r in d_rows]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def create_notification(self, notification: Notification) -> Notification:
        """Insert and return the stored notification (with id and created_at set)."""
        created_at = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                notifications.insert().values(
                    title=notification.title,
                    message=notification.message,
                    created_by=notification.created_by,
                    created_at=created_at,
                )
            )
            conn.commit()
        notification.id = result.inserted_primary_key[0]
        notification.created_at = created_at
        return notification

    def list_notifications(self, params: PageParams) -> tuple[int, list[Notification]]:
        """Return (total, one page) newest first."""
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(notifications)).scalar() or 0
            rows = conn.execute(
                notifications.select()
                .order_by(notifications.c.created_at.desc(), notifications.c.id.desc())
                .offset(params.skip)
                .limit(params.limit)
            ).fetchall()
        return total, [_row_to_notification(r) for r in rows]

    # ------------------------------------------------------------------
    # Contact messages
    # ------------------------------------------------------------------

    def create_contact(self, contact: Contact) -> Contact:
        """Insert and return the stored contact message (with id and created_at set)."""
        created_at = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                contacts.insert().values(
                    name=contact.name,
                    email=contact.email,
                    number=contact.number,
                    message=contact.message,
                    submitted_by=contact.submitted_by,
                    created_at=created_at,
                )
            )
            conn.commit()
        contact.id = result.inserted_primary_key[0]
        contact.created_at = created_at
        return contact

    def list_contacts(self, params: PageParams) -> tuple[int, list[Contact]]:
        """Return (total, one page) newest first."""
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(contacts)).scalar() or 0
            rows = conn.execute(
                contacts.select()
                .order_by(contacts.c.created_at.desc(), contacts.c.id.desc())
                .offset(params.skip)
                .limit(params.limit)
            ).fetchall()
        return total, [_row_to_contact(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _constructor_values(constructor: Constructor) -> dict:
    return {
        "position": constructor.position,
        "team": constructor.team,
        "color": constructor.color,
        "drivers": constructor.drivers,
        "points": constructor.points,
        "wins": constructor.wins,
        "podiums": constructor.podiums,
        "season": constructor.season,
    }


def _row_to_constructor(row) -> Constructor:
    return Constructor(
        id=row.id,
        position=row.position,
        team=row.team,
        color=row.color,
        drivers=row.drivers,
        points=row.points,
        wins=row.wins,
        podiums=row.podiums,
        season=row.season,
    )


def _row_to_driver(row) -> Driver:
    return Driver(
        id=row.id,
        name=row.name,
        team=row.team,
        constructor_id=row.constructor_id,
        nationality=row.nationality,
        points=row.points,
        wins=row.wins,
        podiums=row.podiums,
        championships=row.championships,
        season=row.season,
        pole_positions=row.pole_positions,
        starts=row.starts,
        image_url=row.image_url,
    )


def _row_to_notification(row) -> Notification:
    return Notification(
        id=row.id,
        title=row.title,
        message=row.message,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _row_to_contact(row) -> Contact:
    return Contact(
        id=row.id,
        name=row.name,
        email=row.email,
        number=row.number,
        message=row.message,
        submitted_by=row.submitted_by,
        created_at=row.created_at,
    )
