"""
auth/passwords.py -- Password hashing and verification.

Security design decisions:
  bcrypt directly (no passlib wrapper). Each hash_password() call draws a fresh
       random salt via bcrypt.gensalt(), so two accounts with the same password
       never share a hash. checkpw() compares digests in constant time.

  72-byte limit: bcrypt only looks at the first 72 bytes of input and current
       releases raise ValueError beyond that. validate_password_length() lets the
       service reject such passwords as a ValidationError before hashing; any
       ValueError that still escapes hashpw() is a PasswordHashError, which
       aborts the write so an account is never stored without a valid hash.

  _DUMMY_HASH: computed once at module load. The auth service verifies against
       it on every login that is rejected before the real password check
       (unknown email, disabled account), so response time does not reveal
       which branch rejected the attempt.

Layer rule: no imports from api/, web/, or stats/.
"""

from __future__ import annotations

import logging

import bcrypt

from core.errors import PasswordHashError, ValidationError

logger = logging.getLogger("f1stats.auth")

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72


def validate_password_length(plain: str) -> None:
    """Raise ValidationError when plain is too short or too long for bcrypt."""
    if len(plain) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    except (ValueError, TypeError) as exc:
        logger.error("Password hashing failed: %s", type(exc).__name__)
        raise PasswordHashError("Could not process the password. Please try again.") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def burn_verification(plain: str) -> None:
    """Spend one bcrypt verification's worth of time and discard the result."""
    verify_password(plain or "x", _DUMMY_HASH)


_DUMMY_HASH: str = hash_password("f1stats_timing_dummy")
