"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores and services do the work.

Layer rule: no imports from api/, web/, or stats/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

ROLES = ("user", "admin")


@dataclass
class Account:
    """A registered user of the site.

    email is always stored lowercased; lookups lowercase their input before
    querying. hashed_password is a bcrypt hash and is never serialized into
    API responses (see api/models.AccountOut).

    favorite_teams / favorite_drivers are ordered sets of constructor and
    driver ids: insertion order is kept, duplicates are never stored.
    """

    username: str
    email: str
    hashed_password: str = ""
    role: str = "user"  # "user" or "admin"
    id: int | None = None
    is_active: bool = True
    created_at: str | None = None
    last_login: str | None = None
    favorite_teams: list[int] = field(default_factory=list)
    favorite_drivers: list[int] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass
class Session:
    """A server-side session record.

    token_hash is HMAC-SHA256(SESSION_SECRET, token). The raw token lives only
    in the client's cookie. expires_at is a Unix timestamp (seconds); a row
    past its expiry is treated exactly like a missing row.
    """

    token_hash: str
    account_id: int
    expires_at: float
    created_at: str | None = None
