"""
API request and response models for the F1 Stats REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
stats/models.py, which own the internal domain representation. Route handlers
map between the two.

Field names are snake_case in Python and camelCase on the wire (isActive,
createdAt, constructorId, ...). Requests accept either spelling.

Separation of concerns: auth/ and stats/ models = domain truth; api/ models = API contract.
"""

from typing import Annotated, Literal, Optional

from fastapi import Path
from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, StrictBool
from pydantic.alias_generators import to_camel

from auth.models import Account
from core.pagination import MAX_SQL_INT
from stats.models import DEFAULT_COLOR, DEFAULT_SEASON, Constructor, Contact, Driver, Notification


# Every integer that reaches a bound SQL parameter must fit a signed 64-bit column.
RecordId = Annotated[int, Field(ge=1, le=MAX_SQL_INT)]
PathId = Annotated[int, Path(ge=1, le=MAX_SQL_INT)]
Count = Annotated[int, Field(ge=-MAX_SQL_INT, le=MAX_SQL_INT)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RoleUpdate(CamelModel):
    """Body for PATCH /api/admin/users/{id}/role."""

    role: Literal["user", "admin"]


class StatusUpdate(CamelModel):
    """Body for PATCH /api/admin/users/{id}/status.

    StrictBool: "false", 0, and "no" are rejected rather than coerced, so a
    typo can never disable an account by accident.
    """

    is_active: StrictBool


class FavoriteRequest(CamelModel):
    type: Literal["team", "driver"]
    id: RecordId


class ContactIn(CamelModel):
    """Body for POST /send-data. The message arrives as "msg"; only it is required."""

    name: str = Field("", max_length=100)
    email: str = Field("", max_length=255)
    number: str = Field("", max_length=30)
    message: str = Field("", alias="msg", max_length=5000)

    def to_contact(self, submitted_by: Optional[int]) -> Contact:
        return Contact(
            name=self.name, email=self.email, number=self.number, message=self.message, submitted_by=submitted_by
        )


class NotificationCreate(CamelModel):
    """Body for POST /api/admin/notifications. Emptiness is checked after stripping."""

    title: str = ""
    message: str = ""


class ConstructorIn(CamelModel):
    """Body for POST and PUT /api/constructors.

    Only position, team, and drivers are required; the handler checks them so
    the error names all three at once. Optional numbers default to zero.
    """

    position: Optional[Count] = None
    team: Optional[str] = None
    drivers: Optional[str] = None
    color: Optional[str] = None
    points: Optional[FiniteFloat] = None
    wins: Optional[Count] = None
    podiums: Optional[Count] = None
    season: Optional[Count] = None

    def is_complete(self) -> bool:
        return bool(self.team) and bool(self.drivers) and self.position is not None

    def to_constructor(self) -> Constructor:
        return Constructor(
            position=self.position,
            team=self.team,
            drivers=self.drivers,
            color=self.color or DEFAULT_COLOR,
            points=self.points or 0,
            wins=self.wins or 0,
            podiums=self.podiums or 0,
            season=self.season or DEFAULT_SEASON,
        )


class DriverCreate(CamelModel):
    """Body for POST /api/drivers. The constructor is resolved by id, else by team name."""

    name: Optional[str] = None
    team: Optional[str] = None
    constructor_id: Optional[RecordId] = None
    points: Optional[FiniteFloat] = None
    wins: Optional[Count] = None
    podiums: Optional[Count] = None


class DriverPointsUpdate(CamelModel):
    points: Optional[FiniteFloat] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthUser(CamelModel):
    """Identity block returned by login, register, and profile updates."""

    id: int
    username: str
    email: str
    role: str

    @classmethod
    def from_account(cls, account: Account) -> "AuthUser":
        return cls(id=account.id, username=account.username, email=account.email, role=account.role)


class AccountOut(CamelModel):
    """Admin view of an account. Never includes the password hash or favorites."""

    id: int
    username: str
    email: str
    role: str
    is_active: bool
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountOut":
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            role=account.role,
            is_active=account.is_active,
            created_at=account.created_at,
            last_login=account.last_login,
        )


class ConstructorOut(CamelModel):
    id: int
    position: int
    team: str
    color: str
    drivers: str
    points: float
    wins: int
    podiums: int
    season: int

    @classmethod
    def from_constructor(cls, c: Constructor) -> "ConstructorOut":
        return cls(
            id=c.id,
            position=c.position,
            team=c.team,
            color=c.color,
            drivers=c.drivers,
            points=c.points,
            wins=c.wins,
            podiums=c.podiums,
            season=c.season,
        )


class ConstructorRef(CamelModel):
    """The team and colour of a driver's constructor, embedded in driver listings."""

    id: int
    team: str
    color: str

    @classmethod
    def from_constructor(cls, c: Constructor) -> "ConstructorRef":
        return cls(id=c.id, team=c.team, color=c.color)


class DriverOut(CamelModel):
    id: int
    name: str
    team: str
    constructor_id: Optional[int] = None
    nationality: str
    points: float
    wins: int
    podiums: int
    championships: int
    season: int
    pole_positions: int
    starts: int
    image_url: Optional[str] = None
    constructor: Optional[ConstructorRef] = None  # None when the constructor was deleted

    @classmethod
    def from_driver(cls, d: Driver, constructor: Optional[Constructor] = None) -> "DriverOut":
        return cls(
            id=d.id,
            name=d.name,
            team=d.team,
            constructor_id=d.constructor_id,
            nationality=d.nationality,
            points=d.points,
            wins=d.wins,
            podiums=d.podiums,
            championships=d.championships,
            season=d.season,
            pole_positions=d.pole_positions,
            starts=d.starts,
            image_url=d.image_url,
            constructor=ConstructorRef.from_constructor(constructor) if constructor is not None else None,
        )


class ContactOut(CamelModel):
    id: int
    name: str
    email: str
    number: str
    message: str
    submitted_by: Optional[int] = None
    created_at: str

    @classmethod
    def from_contact(cls, c: Contact) -> "ContactOut":
        return cls(
            id=c.id,
            name=c.name,
            email=c.email,
            number=c.number,
            message=c.message,
            submitted_by=c.submitted_by,
            created_at=c.created_at,
        )


class NotificationOut(CamelModel):
    id: int
    title: str
    message: str
    created_by: Optional[int] = None
    created_at: str

    @classmethod
    def from_notification(cls, n: Notification) -> "NotificationOut":
        return cls(id=n.id, title=n.title, message=n.message, created_by=n.created_by, created_at=n.created_at)


class SearchResult(CamelModel):
    """One row of GET /api/search. type is "constructor" or "driver".

    The shared fields drive the result list; each subclass adds the raw
    numbers for its type so a client can render its own summary.
    """

    type: str
    id: int
    name: str
    description: str
    detail: str

    @classmethod
    def from_constructor(cls, c: Constructor) -> "ConstructorSearchResult":
        return ConstructorSearchResult(
            type="constructor",
            id=c.id,
            name=c.team,
            description=f"Constructors' Championship: Position {c.position}",
            detail=f"Drivers: {c.drivers} • Points: {_points(c.points)}",
            position=c.position,
            drivers=c.drivers,
            points=c.points,
        )

    @classmethod
    def from_driver(cls, d: Driver) -> "DriverSearchResult":
        return DriverSearchResult(
            type="driver",
            id=d.id,
            name=d.name,
            description="Drivers' Championship",
            detail=f"Team: {d.team} • Points: {_points(d.points)}",
            team=d.team,
            points=d.points,
            nationality=d.nationality,
        )


class ConstructorSearchResult(SearchResult):
    position: int
    drivers: str
    points: float


class DriverSearchResult(SearchResult):
    team: str
    points: float
    nationality: str


def _points(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
