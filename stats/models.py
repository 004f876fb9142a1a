"""
stats/models.py -- Domain dataclasses for the F1 catalog, notifications, and contact messages.

These are pure data containers with zero logic. Filtering, ordering, and
aggregation live in stats/store.py.

id is None before the record is written to the database.
"""

from dataclasses import dataclass
from typing import Optional

DEFAULT_COLOR = "#FF0000"
DEFAULT_SEASON = 2024


@dataclass
class Constructor:
    """A team in the constructors' championship.

    drivers is a display string ("Max Verstappen, Sergio Perez"), not a
    relation. Driver rows reference constructors through constructor_id.
    """

    position: int
    team: str
    drivers: str
    color: str = DEFAULT_COLOR
    points: float = 0
    wins: int = 0
    podiums: int = 0
    season: int = DEFAULT_SEASON
    id: Optional[int] = None


@dataclass
class Driver:
    """A driver in the drivers' championship.

    constructor_id must reference an existing Constructor at creation time.
    Deleting the constructor later leaves the driver in place.
    """

    name: str
    team: str
    constructor_id: Optional[int] = None
    nationality: str = "Unknown"
    points: float = 0
    wins: int = 0
    podiums: int = 0
    championships: int = 0
    season: int = DEFAULT_SEASON
    pole_positions: int = 0
    starts: int = 0
    image_url: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Notification:
    """An admin broadcast shown to every signed-in user. Append-only."""

    title: str
    message: str
    created_by: Optional[int] = None  # account id; weak reference
    created_at: str = ""  # ISO 8601, set by store on insert
    id: Optional[int] = None


@dataclass
class Contact:
    """A message sent through the contact form by a signed-in account."""

    name: str
    email: str
    message: str
    number: str = ""
    submitted_by: Optional[int] = None  # account id; weak reference
    created_at: str = ""  # ISO 8601, set by store on insert
    id: Optional[int] = None
