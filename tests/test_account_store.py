"""Unit tests for auth/store.py -- AccountStore persistence.

Covers:
- create/get round trip, email lowercasing, favorites JSON encoding
- UNIQUE(username) and UNIQUE(email) raise IntegrityError
- find_by_email_or_username() matches either column
- list_accounts() filtering, newest-first ordering, and pagination
- update_account() field whitelist and type conversion
- delete_account() reports whether a row was removed
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Account
from auth.store import AccountStore
from core.pagination import FilterSpec, PageParams, normalize, user_filter


@pytest.fixture
def store():
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


def _add(store: AccountStore, username: str, email: str, **kwargs) -> int:
    return store.create_account(Account(username=username, email=email, hashed_password="$2b$fake", **kwargs))


def test_create_and_get(store: AccountStore) -> None:
    account_id = _add(store, "alice", "Alice@Example.com")
    account = store.get_by_id(account_id)
    assert account.username == "alice"
    assert account.email == "alice@example.com"
    assert account.role == "user"
    assert account.is_active is True
    assert account.created_at
    assert account.favorite_teams == []


def test_get_by_email_is_case_insensitive(store: AccountStore) -> None:
    account_id = _add(store, "alice", "alice@example.com")
    assert store.get_by_email("  ALICE@example.COM ").id == account_id


def test_missing_lookups_return_none(store: AccountStore) -> None:
    assert store.get_by_id(999) is None
    assert store.get_by_email("nobody@example.com") is None
    assert store.get_by_username("nobody") is None


@pytest.mark.parametrize("username,email", [("alice", "other@example.com"), ("other", "ALICE@example.com")])
def test_unique_constraints(store: AccountStore, username: str, email: str) -> None:
    _add(store, "alice", "alice@example.com")
    with pytest.raises(IntegrityError):
        _add(store, username, email)


def test_find_by_email_or_username(store: AccountStore) -> None:
    alice = _add(store, "alice", "alice@example.com")
    assert store.find_by_email_or_username("x@example.com", "alice").id == alice
    assert store.find_by_email_or_username("ALICE@example.com", "x").id == alice
    assert store.find_by_email_or_username("x@example.com", "x") is None


def test_list_accounts_filters_and_pages(store: AccountStore) -> None:
    for i in range(5):
        _add(store, f"driver{i}", f"driver{i}@example.com")
    _add(store, "boss", "boss@example.com", role="admin")
    _add(store, "gone", "gone@example.com", is_active=False)

    total, page = store.list_accounts(user_filter({"search": "DRIVER"}), PageParams(page=2, limit=2, skip=2))
    assert total == 5
    assert len(page) == 2

    total, page = store.list_accounts(user_filter({"role": "admin"}), normalize({}))
    assert [a.username for a in page] == ["boss"]

    total, page = store.list_accounts(user_filter({"status": "disabled"}), normalize({}))
    assert [a.username for a in page] == ["gone"]


def test_list_accounts_newest_first(store: AccountStore) -> None:
    first = _add(store, "first", "first@example.com")
    second = _add(store, "second", "second@example.com")
    _total, page = store.list_accounts(FilterSpec(), normalize({}))
    assert [a.id for a in page] == [second, first]


def test_update_account_converts_fields(store: AccountStore) -> None:
    account_id = _add(store, "alice", "alice@example.com")
    assert store.update_account(account_id, is_active=False, email="NEW@example.com", favorite_teams=[3, 1]) is True
    account = store.get_by_id(account_id)
    assert account.is_active is False
    assert account.email == "new@example.com"
    assert account.favorite_teams == [3, 1]


def test_update_account_rejects_unknown_fields(store: AccountStore) -> None:
    account_id = _add(store, "alice", "alice@example.com")
    with pytest.raises(ValueError):
        store.update_account(account_id, id=99)


def test_update_missing_account(store: AccountStore) -> None:
    assert store.update_account(999, role="admin") is False


def test_update_last_login(store: AccountStore) -> None:
    account_id = _add(store, "alice", "alice@example.com")
    store.update_last_login(account_id)
    assert store.get_by_id(account_id).last_login


def test_delete_account(store: AccountStore) -> None:
    account_id = _add(store, "alice", "alice@example.com")
    assert store.delete_account(account_id) is True
    assert store.get_by_id(account_id) is None
    assert store.delete_account(account_id) is False
