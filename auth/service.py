"""
auth/service.py -- Login, registration, logout, profile, and admin bootstrap.

AuthService is built once in the application lifespan and stored on
app.state.auth_service. It owns no mutable state of its own: everything lives
in the two stores it is handed.

Login state machine:
    LookupAccount --not found--> Reject
        |found
    VerifyActive  --inactive---> Reject
        |active
    VerifyPassword --mismatch--> Reject
        |match
    stamp last_login -> EstablishSession -> Success

Every Reject raises the same AuthenticationError ("bad_credentials", 401).
The unknown-email and disabled-account branches burn one bcrypt verification
against a dummy hash so the three rejections also take the same time. The
server log records which branch fired; the client never learns it.

Account writes go through save_account(): validate -> hash only when a new
password was supplied -> persist. Nothing else in the codebase calls
hash_password() on an account, so an existing hash is never re-hashed.

Layer rule: no imports from api/, web/, or stats/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Account
from auth.passwords import burn_verification, hash_password, validate_password_length, verify_password
from auth.sessions import SessionStore
from auth.store import AccountStore
from core.errors import AuthenticationError, ConflictError, ValidationError

logger = logging.getLogger("f1stats.auth")

INVALID_CREDENTIALS = "Invalid email or password."
USERNAME_MIN, USERNAME_MAX = 3, 30


def _bad_credentials() -> AuthenticationError:
    return AuthenticationError(INVALID_CREDENTIALS, code="bad_credentials")


def validate_identity(username: str, email: str) -> None:
    """Raise ValidationError unless username and email are acceptable."""
    if not username or not email:
        raise ValidationError("Username and email are required")
    if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
        raise ValidationError(f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters")
    if "@" not in email or any(ch.isspace() for ch in email) or len(email) > 255:
        raise ValidationError("Please provide a valid email address")


class AuthService:
    """Authentication and account-write operations over injected stores."""

    def __init__(self, accounts: AccountStore, sessions: SessionStore) -> None:
        self.accounts = accounts
        self.sessions = sessions

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def resolve(self, token: str | None) -> Account | None:
        """Map a session token to an active Account, or None.

        Fails closed: an expired session, a deleted or disabled account, and a
        store failure all yield None.
        """
        if not token:
            return None
        account_id = self.sessions.resolve(token)
        if account_id is None:
            return None
        try:
            account = self.accounts.get_by_id(account_id)
        except SQLAlchemyError:
            logger.exception("Account lookup failed during session resolution")
            return None
        if account is None or not account.is_active:
            return None
        return account

    def _start_session(self, account_id: int, previous_token: str | None) -> str:
        # A fresh token on every login; whatever the client held before is revoked.
        if previous_token:
            self.sessions.destroy(previous_token)
        return self.sessions.create(account_id)

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, previous_token: str | None = None) -> tuple[Account, str]:
        """Authenticate by email and password. Returns (account, session token).

        Raises AuthenticationError("bad_credentials") on every rejection.
        """
        normalized = (email or "").strip().lower()
        if not normalized or not password:
            burn_verification(password)
            raise _bad_credentials()

        account = self.accounts.get_by_email(normalized)
        if account is None:
            burn_verification(password)
            logger.info("Login rejected: no account for submitted email")
            raise _bad_credentials()

        if not account.is_active:
            burn_verification(password)
            logger.info("Login rejected: account %s is disabled", account.id)
            raise _bad_credentials()

        if not verify_password(password, account.hashed_password):
            logger.info("Login rejected: wrong password for account %s", account.id)
            raise _bad_credentials()

        self.accounts.update_last_login(account.id)
        token = self._start_session(account.id, previous_token)
        logger.info("Login successful for account %s", account.id)
        return self.accounts.get_by_id(account.id) or account, token

    def logout(self, token: str | None) -> None:
        """Destroy the session. Logging out without a session is not an error."""
        if token and self.sessions.destroy(token):
            logger.info("Session destroyed")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        username: str,
        email: str,
        password: str,
        confirm_password: str,
        previous_token: str | None = None,
    ) -> tuple[Account, str]:
        """Create a role=user account and log it in. Returns (account, session token)."""
        if not username or not email or not password or not confirm_password:
            raise ValidationError("All fields are required")

        username = username.strip()
        email = email.strip().lower()
        validate_identity(username, email)

        if password != confirm_password:
            raise ValidationError("Passwords do not match")
        validate_password_length(password)

        existing = self.accounts.find_by_email_or_username(email, username)
        if existing is not None:
            if existing.email == email:
                raise ConflictError("Email already registered")
            raise ConflictError("Username already taken")

        account = self.save_account(Account(username=username, email=email, role="user"), new_password=password)
        logger.info("Account %s registered", account.id)

        token = self._start_session(account.id, previous_token)
        return account, token

    # ------------------------------------------------------------------
    # Account write pipeline
    # ------------------------------------------------------------------

    def save_account(self, account: Account, new_password: str | None = None) -> Account:
        """Validate, hash only if a new password was given, then persist.

        Inserts when account.id is None, updates otherwise. Returns the
        account as stored. A PasswordHashError from hashing propagates before
        anything is written.
        """
        validate_identity(account.username, account.email)
        if account.role not in ("user", "admin"):
            raise ValidationError("Invalid role")

        if new_password is not None:
            validate_password_length(new_password)
            account.hashed_password = hash_password(new_password)
        if not account.hashed_password:
            raise ValidationError("Password is required")

        try:
            if account.id is None:
                account.id = self.accounts.create_account(account)
            else:
                self.accounts.update_account(
                    account.id,
                    username=account.username,
                    email=account.email,
                    hashed_password=account.hashed_password,
                    role=account.role,
                    is_active=account.is_active,
                )
        except IntegrityError as exc:
            # A concurrent request claimed the username or email first.
            raise ConflictError("Username or email already taken") from exc

        return self.accounts.get_by_id(account.id) or account

    def update_profile(
        self,
        account: Account,
        username: str | None,
        email: str | None,
        current_password: str | None = None,
        new_password: str | None = None,
        confirm_new_password: str | None = None,
    ) -> Account:
        """Change username, email, and optionally password for account."""
        if not username or not email:
            raise ValidationError("Username and email are required")
        username = username.strip()
        normalized_email = email.strip().lower()
        validate_identity(username, normalized_email)

        if username != account.username and self.accounts.get_by_username(username) is not None:
            raise ConflictError("Username already taken")
        if normalized_email != account.email and self.accounts.get_by_email(normalized_email) is not None:
            raise ConflictError("Email already registered")

        password_to_set: str | None = None
        if new_password or confirm_new_password:
            if not current_password:
                raise ValidationError("Current password is required to change your password")
            if not verify_password(current_password, account.hashed_password):
                raise ValidationError("Current password is incorrect")
            if not new_password or len(new_password) < 8:
                raise ValidationError("New password must be at least 8 characters")
            if new_password != confirm_new_password:
                raise ValidationError("New passwords do not match")
            password_to_set = new_password

        account.username = username
        account.email = normalized_email
        return self.save_account(account, new_password=password_to_set)

    # ------------------------------------------------------------------
    # Admin bootstrap
    # ------------------------------------------------------------------

    def ensure_admin_user(self, email: str, username: str, password: str) -> Account | None:
        """Create or repair the bootstrap admin account from configuration.

        Skipped when email or password is not configured. An existing account
        matching the email or username is promoted to admin, has its username
        and email synced, and gets its password reset only if the configured
        password no longer verifies.
        """
        if not email or not password:
            logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set. Skipping admin seed.")
            return None

        username = (username or "admin").strip()
        normalized_email = email.strip().lower()
        admin = self.accounts.find_by_email_or_username(normalized_email, username)

        if admin is None:
            created = self.save_account(
                Account(username=username, email=normalized_email, role="admin"), new_password=password
            )
            logger.info("Admin account %s created", created.id)
            return created

        changed = False
        if admin.role != "admin":
            admin.role = "admin"
            changed = True
        if admin.username != username:
            admin.username = username
            changed = True
        if admin.email != normalized_email:
            owner = self.accounts.get_by_email(normalized_email)
            if owner is None or owner.id == admin.id:
                admin.email = normalized_email
                changed = True
            else:
                logger.warning("ADMIN_EMAIL is already used by another account. Skipping email update.")

        password_to_set = None if verify_password(password, admin.hashed_password) else password
        if changed or password_to_set is not None:
            admin = self.save_account(admin, new_password=password_to_set)
            logger.info("Admin account %s updated from environment settings", admin.id)
        return admin
