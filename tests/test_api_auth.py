"""
tests/test_api_auth.py -- Integration tests for login, registration, logout,
profile, and session status through the real ASGI stack.

Coverage:
  - Register -> status authenticated -> logout -> status anonymous
  - Every login rejection (unknown, wrong password, disabled) is the same 401
  - Duplicate registration is rejected regardless of email case
  - Browser form posts get 303 redirects with whitelisted ?error= codes
  - POST /login and POST /register are rate limited per client (429 with Retry-After)
  - Logging in again revokes the previous session
  - Disabling an account ends its live session
  - Authenticated writes re-issue the session cookie; reads do not
  - Anonymous writes to /api/* get the 401 envelope before reaching a route
  - A failing session store leaves every request unauthenticated
"""

from __future__ import annotations

import uuid

import pytest
from conftest import USER_EMAIL, USER_PASSWORD, AppEnv, login, memory_url
from fastapi.testclient import TestClient

from auth.models import Account
from auth.store import make_engine


def _register(client: TestClient, username: str | None = None, password: str = "password123", **extra):
    username = username or f"u{uuid.uuid4().hex[:10]}"
    body = {
        "username": username,
        "email": extra.pop("email", f"{username}@example.com"),
        "password": password,
        "confirmPassword": extra.pop("confirm", password),
    }
    return client.post("/register", json=body)


def _set_cookie_headers(resp) -> list[str]:
    return [v for k, v in resp.headers.multi_items() if k.lower() == "set-cookie"]


class TestSessionLifecycle:
    def test_register_status_logout(self, client: TestClient) -> None:
        """Registering logs the client in; logging out returns it to anonymous."""
        resp = _register(client, "alice_f1", email="alice.f1@example.com")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Registration successful! You are now logged in."
        assert body["redirect"] == "/dashboard"
        assert body["user"]["username"] == "alice_f1"
        assert body["user"]["role"] == "user"
        assert "hashedPassword" not in body["user"]
        assert resp.headers["cache-control"] == "no-store"

        status = client.get("/api/auth/status").json()
        assert status["authenticated"] is True
        assert status["user"]["email"] == "alice.f1@example.com"
        assert status["user"]["isActive"] is True

        resp = client.post("/logout", headers={"Accept": "application/json"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Logged out successfully"}
        assert client.get("/api/auth/status").json() == {"success": True, "authenticated": False}

    def test_logout_without_session_succeeds(self, client: TestClient) -> None:
        resp = client.post("/logout", headers={"Accept": "application/json"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_logged_out_token_is_dead(self, client: TestClient, app_env: AppEnv) -> None:
        token = login(client, USER_EMAIL, USER_PASSWORD)
        client.post("/logout", headers={"Accept": "application/json"})
        assert app_env.service.resolve(token) is None

    def test_login_again_revokes_previous_session(self, client: TestClient, app_env: AppEnv) -> None:
        first = login(client, USER_EMAIL, USER_PASSWORD)
        second = login(client, USER_EMAIL, USER_PASSWORD)
        assert first != second
        assert app_env.sessions.resolve(first) is None
        assert app_env.sessions.resolve(second) == app_env.user.id
        assert client.cookies.get("session_id") == second

    def test_login_response_shape(self, client: TestClient, app_env: AppEnv) -> None:
        resp = client.post("/login", json={"email": "  Racer@Example.com ", "password": USER_PASSWORD})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Login successful!"
        assert body["user"] == {"id": app_env.user.id, "username": "racer", "email": USER_EMAIL, "role": "user"}
        cookie = next(h for h in _set_cookie_headers(resp) if h.startswith("session_id="))
        assert "httponly" in cookie.lower()

    def test_disabling_account_ends_session(self, client: TestClient, app_env: AppEnv) -> None:
        resp = _register(client)
        account_id = resp.json()["user"]["id"]
        app_env.accounts.update_account(account_id, is_active=False)

        assert client.get("/api/auth/status").json()["authenticated"] is False
        resp = client.get("/api/favorites")
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthorized"


class TestLoginRejection:
    def test_all_rejections_identical(self, client: TestClient, app_env: AppEnv) -> None:
        """Unknown email, wrong password, and a disabled account are indistinguishable."""
        app_env.service.save_account(
            Account(username="benched", email="benched@example.com", is_active=False),
            new_password="benchedpass1",
        )
        attempts = [
            {"email": "benched@example.com", "password": "benchedpass1"},
            {"email": "benched@example.com", "password": "wrong-password"},
            {"email": "benched@example.com", "password": "benchedpass1"},
            {"email": "nobody@example.com", "password": "benchedpass1"},
            {"email": USER_EMAIL, "password": "wrong-password"},
        ]
        responses = [client.post("/login", json=body) for body in attempts]

        assert {r.status_code for r in responses} == {401}
        bodies = [r.json() for r in responses]
        assert all(b == bodies[0] for b in bodies)
        assert bodies[0] == {"success": False, "code": "bad_credentials", "message": "Invalid email or password."}
        assert "session_id" not in client.cookies

    def test_missing_fields(self, client: TestClient) -> None:
        resp = client.post("/login", json={"email": USER_EMAIL})
        assert resp.status_code == 401
        assert resp.json()["code"] == "bad_credentials"

    def test_non_object_json_body(self, client: TestClient) -> None:
        resp = client.post("/login", json=["not", "an", "object"])
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_rate_limited_after_ten_attempts(self, client: TestClient) -> None:
        for _ in range(10):
            assert client.post("/login", json={"email": "x@example.com", "password": "nopenope"}).status_code == 401
        resp = client.post("/login", json={"email": USER_EMAIL, "password": USER_PASSWORD})
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limited"
        assert "retry-after" in resp.headers


class TestRegistrationRejection:
    def test_duplicate_email_any_case(self, client: TestClient) -> None:
        assert _register(client, "dup_one", email="dup@example.com").status_code == 200
        client.post("/logout", headers={"Accept": "application/json"})

        resp = _register(client, "dup_two", email="DUP@Example.COM")
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "code": "conflict", "message": "Email already registered"}

    def test_duplicate_username(self, client: TestClient) -> None:
        resp = _register(client, "racer", email="another.racer@example.com")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Username already taken"

    def test_password_mismatch(self, client: TestClient) -> None:
        resp = _register(client, confirm="different123")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Passwords do not match"
        assert "session_id" not in client.cookies

    def test_short_password(self, client: TestClient) -> None:
        resp = _register(client, password="short")
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_rate_limited_after_ten_attempts(self, client: TestClient) -> None:
        for _ in range(10):
            assert _register(client, password="short").status_code == 400
        resp = _register(client)
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limited"
        assert "session_id" not in client.cookies

    def test_login_and_register_count_separately(self, client: TestClient) -> None:
        for _ in range(10):
            assert _register(client, password="short").status_code == 400
        assert client.post("/login", json={"email": USER_EMAIL, "password": USER_PASSWORD}).status_code == 200


class TestFormPosts:
    """Browser form posts never see JSON; outcomes travel as redirects."""

    def test_form_login_redirects_to_dashboard(self, client: TestClient) -> None:
        resp = client.post("/login", data={"email": USER_EMAIL, "password": USER_PASSWORD})
        assert resp.status_code == 303
        assert resp.headers["location"] == "/dashboard"
        assert client.cookies.get("session_id")

    def test_form_login_failure_redirects_with_code(self, client: TestClient) -> None:
        resp = client.post("/login", data={"email": USER_EMAIL, "password": "wrong-password"})
        assert resp.status_code == 303
        assert resp.headers["location"] == "/?error=bad_credentials"

    def test_form_register_failure_redirects_with_code(self, client: TestClient) -> None:
        resp = client.post(
            "/register",
            data={"username": "formy", "email": "formy@example.com", "password": "a", "confirmPassword": "a"},
        )
        assert resp.status_code == 303
        assert resp.headers["location"] == "/?error=validation_error"

    def test_form_logout_redirects_home(self, client: TestClient) -> None:
        login(client, USER_EMAIL, USER_PASSWORD)
        resp = client.post("/logout")
        assert resp.status_code == 303
        assert resp.headers["location"] == "/"
        assert "session_id" not in client.cookies


class TestProfile:
    def test_anonymous_json_is_401(self, client: TestClient) -> None:
        resp = client.post("/profile", json={"username": "x", "email": "x@example.com"})
        assert resp.status_code == 401

    def test_anonymous_form_redirects_home(self, client: TestClient) -> None:
        resp = client.post("/profile", data={"username": "x", "email": "x@example.com"})
        assert resp.status_code == 303
        assert resp.headers["location"] == "/"

    def test_json_update(self, client: TestClient) -> None:
        _register(client, "profile_old", email="profile.old@example.com")
        resp = client.post("/profile", json={"username": "profile_new", "email": "Profile.New@example.com"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Profile updated successfully"
        assert body["user"]["username"] == "profile_new"
        assert body["user"]["email"] == "profile.new@example.com"

    def test_form_update_and_error(self, client: TestClient) -> None:
        _register(client, "profile_form", email="profile.form@example.com")
        resp = client.post("/profile", data={"username": "profile_form2", "email": "profile.form@example.com"})
        assert resp.status_code == 303
        assert resp.headers["location"] == "/dashboard?message=profile_updated"

        resp = client.post("/profile", data={"username": "racer", "email": "profile.form@example.com"})
        assert resp.status_code == 303
        assert resp.headers["location"] == "/dashboard?error=conflict"

    def test_password_change(self, client: TestClient) -> None:
        _register(client, "profile_pw", email="profile.pw@example.com")
        resp = client.post(
            "/profile",
            json={
                "username": "profile_pw",
                "email": "profile.pw@example.com",
                "currentPassword": "password123",
                "newPassword": "changed-pass-1",
                "confirmNewPassword": "changed-pass-1",
            },
        )
        assert resp.status_code == 200
        client.post("/logout", headers={"Accept": "application/json"})
        assert client.post("/login", json={"email": "profile.pw@example.com", "password": "password123"}).status_code == 401
        assert client.post("/login", json={"email": "profile.pw@example.com", "password": "changed-pass-1"}).status_code == 200


class TestWriteGuardAndSliding:
    def test_anonymous_api_write_is_401(self, client: TestClient) -> None:
        for method, path in [
            ("POST", "/api/favorites/add"),
            ("POST", "/api/constructors"),
            ("PATCH", "/api/admin/users/1/status"),
            ("DELETE", "/api/drivers/1"),
        ]:
            resp = client.request(method, path, json={})
            assert resp.status_code == 401, path
            assert resp.json() == {"success": False, "code": "unauthorized", "message": "Authentication required"}

    def test_authenticated_write_reissues_cookie(self, user_client: TestClient) -> None:
        token = user_client.cookies.get("session_id")
        resp = user_client.post("/api/favorites/remove", json={"type": "team", "id": 424242})
        assert resp.status_code == 200
        cookies = [h for h in _set_cookie_headers(resp) if h.startswith("session_id=")]
        assert cookies and cookies[0].startswith(f"session_id={token}")

    def test_read_does_not_reissue_cookie(self, user_client: TestClient) -> None:
        resp = user_client.get("/api/auth/status")
        assert not [h for h in _set_cookie_headers(resp) if h.startswith("session_id=")]


class TestSessionStoreFailure:
    """A session store that cannot be read or written never lets a request through."""

    @pytest.fixture
    def broken_sessions(self, app_env: AppEnv, monkeypatch: pytest.MonkeyPatch):
        # A database with no sessions table: every statement raises OperationalError.
        engine = make_engine(memory_url("broken_sessions_no_schema"))
        monkeypatch.setattr(app_env.sessions, "engine", engine)
        yield app_env.sessions
        engine.dispose()

    def test_live_cookie_reads_as_anonymous(
        self, client: TestClient, app_env: AppEnv, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        login(client, USER_EMAIL, USER_PASSWORD)
        engine = make_engine(memory_url("broken_sessions_live_cookie"))
        monkeypatch.setattr(app_env.sessions, "engine", engine)

        status = client.get("/api/auth/status").json()
        assert status["success"] is True
        assert status["authenticated"] is False

        resp = client.post("/api/favorites/add", json={"type": "team", "id": 1})
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthorized"
        engine.dispose()

    def test_login_reports_internal_error(self, client: TestClient, broken_sessions) -> None:
        resp = client.post("/login", json={"email": USER_EMAIL, "password": USER_PASSWORD})
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "code": "internal_error",
            "message": "Login failed. Please try again.",
        }
        assert "session_id" not in client.cookies

    def test_dashboard_redirects_home(self, client: TestClient, broken_sessions) -> None:
        client.cookies.set("session_id", "token-from-before-the-outage")
        resp = client.get("/dashboard")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
