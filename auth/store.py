"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as stats/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Service, route, and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL. List filters arrive
  as a core.pagination.FilterSpec whose column names come from a fixed
  whitelist, never from the request.

  UNIQUE(username) and UNIQUE(email) are enforced by the schema as the last
  line of defence. The auth service checks both first so it can return a
  precise "already taken" message; an IntegrityError here means a concurrent
  request won the race and is mapped to ConflictError by the caller.

Layer rule: no imports from api/, web/, or stats/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from auth.models import Account
from core.config import get_settings
from core.pagination import FilterSpec, PageParams, where_clauses

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(30), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),  # always lowercase
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default="user"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
    Column("favorite_teams", Text, nullable=False, server_default="[]"),  # JSON array of ids
    Column("favorite_drivers", Text, nullable=False, server_default="[]"),  # JSON array of ids
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite threading and WAL settings applied."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", set_wal_mode)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore()
        account_id = store.create_account(Account(username="alice", email="alice@x.com",
                                                  hashed_password=hash_password("secret123")))
        account = store.get_by_email("Alice@X.com")
        store.close()
    """

    _MUTABLE_FIELDS: set = {
        "username",
        "email",
        "hashed_password",
        "role",
        "is_active",
        "last_login",
        "favorite_teams",
        "favorite_drivers",
    }

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists. hashed_password must already be a bcrypt hash -- this method
        never hashes.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                accounts.insert().values(
                    username=account.username,
                    email=account.email.lower(),
                    hashed_password=account.hashed_password,
                    role=account.role,
                    is_active=1 if account.is_active else 0,
                    created_at=now_iso(),
                    favorite_teams=json.dumps(account.favorite_teams),
                    favorite_drivers=json.dumps(account.favorite_drivers),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(accounts.select().where(accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(accounts.select().where(accounts.c.email == email.strip().lower())).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_username(self, username: str) -> Account | None:
        """Look up an account by exact username (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(accounts.select().where(accounts.c.username == username)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_email_or_username(self, email: str, username: str) -> Account | None:
        """Return the first account owning either the email or the username."""
        with self.engine.connect() as conn:
            row = conn.execute(
                accounts.select()
                .where(or_(accounts.c.email == email.strip().lower(), accounts.c.username == username))
                .order_by(accounts.c.id)
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self, spec: FilterSpec, params: PageParams) -> tuple[int, list[Account]]:
        """Return (total matching, one page of accounts) newest first."""
        clauses = where_clauses(accounts, spec)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(accounts).where(*clauses)).scalar() or 0
            rows = conn.execute(
                accounts.select()
                .where(*clauses)
                .order_by(accounts.c.created_at.desc(), accounts.c.id.desc())
                .offset(params.skip)
                .limit(params.limit)
            ).fetchall()
        return total, [_row_to_account(r) for r in rows]

    def update_account(self, account_id: int, **fields) -> bool:
        """Update mutable fields on an existing account.

        Accepted fields: see _MUTABLE_FIELDS. is_active is passed as bool and
        favorites as lists; both are converted to their column encodings here.
        Unknown fields raise ValueError rather than being silently ignored.

        Returns True if a row was updated, False if account_id was not found.
        """
        unknown = set(fields) - self._MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {unknown!r}")
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        if "email" in fields:
            fields["email"] = fields["email"].lower()
        for key in ("favorite_teams", "favorite_drivers"):
            if key in fields:
                fields[key] = json.dumps(list(fields[key]))
        with self.engine.connect() as conn:
            result = conn.execute(accounts.update().where(accounts.c.id == account_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, account_id: int) -> None:
        """Stamp the current UTC timestamp as last_login for the given account."""
        self.update_account(account_id, last_login=now_iso())

    def delete_account(self, account_id: int) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found.

        Sessions that reference the account are left in place; session
        resolution fails closed once the account is gone.
        """
        with self.engine.connect() as conn:
            result = conn.execute(accounts.delete().where(accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        last_login=row.last_login,
        favorite_teams=json.loads(row.favorite_teams or "[]"),
        favorite_drivers=json.loads(row.favorite_drivers or "[]"),
    )
