"""
auth/sessions.py -- Server-side session store and session cookie helpers.

Sessions live in their own table (and optionally their own database, see
SESSION_DATABASE_URL) so they can be revoked server-side. The client only
ever holds the opaque token in an httpOnly cookie.

Security design:
  Token: secrets.token_urlsafe(32) -- 256 bits of entropy.
  Storage key: HMAC-SHA256(SESSION_SECRET, token). The raw token is never
      persisted, so a leaked sessions table cannot be replayed without also
      knowing SESSION_SECRET. The deterministic hash keeps lookups O(1).
  Expiry: absolute, SESSION_MAX_AGE_SECONDS (7 days) after the last write.
      touch() slides the window; expired rows are inert and purged by
      purge_expired() on a background schedule.

Failure policy:
  resolve(), touch(), and destroy() never raise on database errors -- they log
  and report "no session". Callers therefore fail closed (unauthenticated).
  create() raises InternalError: a login that cannot persist its session must
  not report success.

Layer rule: no imports from api/, web/, or stats/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time

from sqlalchemy import Column, Float, Integer, MetaData, String, Table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import Session
from auth.store import make_engine, now_iso
from core.config import Settings, get_settings
from core.errors import InternalError

logger = logging.getLogger("f1stats.sessions")

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("token_hash", String(64), primary_key=True),  # HMAC-SHA256 hex
    Column("account_id", Integer, nullable=False, index=True),
    Column("expires_at", Float, nullable=False),  # Unix seconds
    Column("created_at", String(32), nullable=False),
)


class SessionStore:
    """Repository for server-side sessions.

    Usage:
        sessions = SessionStore()
        token = sessions.create(account.id)    # put token in the cookie
        account_id = sessions.resolve(token)   # None when absent or expired
        sessions.touch(token)                  # slide the 7-day window
        sessions.destroy(token)                # logout; idempotent
        sessions.close()
    """

    def __init__(
        self,
        db_url: str | None = None,
        secret: str | None = None,
        max_age_seconds: int | None = None,
    ) -> None:
        settings = get_settings()
        self.engine: Engine = make_engine(db_url or settings.session_database_url)
        self._secret = (secret or settings.session_secret).encode("utf-8")
        self.max_age_seconds = max_age_seconds or settings.session_max_age_seconds
        _metadata.create_all(self.engine)

    def _hash(self, token: str) -> str:
        return hmac.new(self._secret, token.encode("utf-8"), hashlib.sha256).hexdigest()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, account_id: int) -> str:
        """Persist a new session for account_id and return the raw token."""
        token = secrets.token_urlsafe(32)
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _sessions.insert().values(
                        token_hash=self._hash(token),
                        account_id=account_id,
                        expires_at=time.time() + self.max_age_seconds,
                        created_at=now_iso(),
                    )
                )
                conn.commit()
        except SQLAlchemyError as exc:
            logger.exception("Session store write failed")
            raise InternalError("Login failed. Please try again.") from exc
        return token

    def get(self, token: str) -> Session | None:
        """Return the live Session for token, or None when absent or expired."""
        if not token:
            return None
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_sessions.select().where(_sessions.c.token_hash == self._hash(token))).fetchone()
        except SQLAlchemyError:
            logger.exception("Session store read failed; treating request as unauthenticated")
            return None
        if row is None or row.expires_at <= time.time():
            return None
        return Session(
            token_hash=row.token_hash,
            account_id=row.account_id,
            expires_at=row.expires_at,
            created_at=row.created_at,
        )

    def resolve(self, token: str) -> int | None:
        """Return the account id bound to token, or None."""
        session = self.get(token)
        return session.account_id if session is not None else None

    def touch(self, token: str) -> bool:
        """Reset the expiry to now + max age. Returns False if the session is gone."""
        if not token:
            return False
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _sessions.update()
                    .where((_sessions.c.token_hash == self._hash(token)) & (_sessions.c.expires_at > time.time()))
                    .values(expires_at=time.time() + self.max_age_seconds)
                )
                conn.commit()
        except SQLAlchemyError:
            logger.exception("Session store touch failed")
            return False
        return result.rowcount > 0

    def destroy(self, token: str) -> bool:
        """Delete the session. Destroying an absent session is not an error.

        Returns True if a row was removed.
        """
        if not token:
            return False
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_sessions.delete().where(_sessions.c.token_hash == self._hash(token)))
                conn.commit()
        except SQLAlchemyError:
            logger.exception("Session store delete failed")
            return False
        return result.rowcount > 0

    def purge_expired(self) -> int:
        """Delete all expired sessions. Returns number of rows removed."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= time.time()))
                conn.commit()
        except SQLAlchemyError:
            logger.exception("Session purge failed")
            return 0
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, settings: Settings | None = None) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    secure:   mirrors COOKIE_SECURE -- only sent over HTTPS in TLS deployments.
    samesite: "none" when secure (cross-site use allowed, browsers require
              Secure for it), "strict" otherwise.
    max_age:  matches the server-side expiry so both lapse together.
    """
    settings = settings or get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite=settings.cookie_samesite,
        secure=settings.cookie_secure,
        max_age=settings.session_max_age_seconds,
    )


def clear_session_cookie(response, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite=settings.cookie_samesite,
        secure=settings.cookie_secure,
    )
