"""
tests/test_web_routes.py -- Integration tests for the server-rendered pages.

Page routes never answer with JSON: anonymous visitors are redirected to /,
signed-in non-admins on admin pages get a 403 HTML page. Flash messages are
looked up from a fixed whitelist, so nothing from the query string is echoed.
"""

from __future__ import annotations

import pytest
from conftest import AppEnv
from fastapi.testclient import TestClient

from stats.models import Constructor

ADMIN_PAGES = ["/admin", "/constructor-manager"]


class TestPublicPages:
    @pytest.mark.parametrize("path", ["/", "/constructorsPage", "/driversPage"])
    def test_renders(self, client: TestClient, path: str) -> None:
        resp = client.get(path)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")

    def test_home_has_login_and_register_forms(self, client: TestClient) -> None:
        html = client.get("/").text
        assert 'action="/login"' in html
        assert 'action="/register"' in html

    def test_login_page_redirects_home(self, client: TestClient) -> None:
        resp = client.get("/login")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    def test_known_error_code_is_rendered(self, client: TestClient) -> None:
        assert "Invalid email or password." in client.get("/?error=bad_credentials").text

    def test_unknown_error_code_is_not_reflected(self, client: TestClient) -> None:
        html = client.get("/", params={"error": "<script>alert(1)</script>"}).text
        assert "<script>alert(1)</script>" not in html
        assert "flash-error" not in html


class TestSignedInPages:
    def test_dashboard_requires_login(self, client: TestClient) -> None:
        resp = client.get("/dashboard")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    def test_dashboard_shows_account_and_favorites(self, user_client: TestClient, app_env: AppEnv) -> None:
        team_id = app_env.stats.create_constructor(Constructor(position=5, team="Aston Martin", drivers="Alonso, Stroll"))
        app_env.accounts.update_account(app_env.user.id, favorite_teams=[team_id])

        html = user_client.get("/dashboard").text
        assert "Welcome, racer" in html
        assert "Aston Martin" in html
        assert "Favorites (1)" in html

    def test_dashboard_flash_message(self, user_client: TestClient) -> None:
        assert "Profile updated successfully" in user_client.get("/dashboard?message=profile_updated").text

    def test_nav_hides_admin_links_for_users(self, user_client: TestClient) -> None:
        html = user_client.get("/").text
        assert 'href="/dashboard"' in html
        assert 'href="/admin"' not in html


class TestAdminPages:
    @pytest.mark.parametrize("path", ADMIN_PAGES)
    def test_anonymous_redirected(self, client: TestClient, path: str) -> None:
        resp = client.get(path)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    @pytest.mark.parametrize("path", ADMIN_PAGES)
    def test_user_gets_403_page(self, user_client: TestClient, path: str) -> None:
        resp = user_client.get(path)
        assert resp.status_code == 403
        assert resp.headers["content-type"].startswith("text/html")
        assert "Access denied" in resp.text

    @pytest.mark.parametrize("path", ADMIN_PAGES)
    def test_admin_allowed(self, admin_client: TestClient, path: str) -> None:
        resp = admin_client.get(path)
        assert resp.status_code == 200
        assert 'href="/admin"' in resp.text


class TestHttpErrors:
    def test_unknown_page_renders_html_404(self, client: TestClient) -> None:
        resp = client.get("/pit-wall")
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("text/html")
        assert "Page Not Found" in resp.text
        assert "/pit-wall" in resp.text

    def test_unknown_page_path_is_escaped(self, client: TestClient) -> None:
        resp = client.get("/<b>boom</b>")
        assert resp.status_code == 404
        assert "<b>boom</b>" not in resp.text

    def test_wrong_method_on_page_renders_html(self, client: TestClient) -> None:
        resp = client.delete("/driversPage")
        assert resp.status_code == 405
        assert "Method Not Allowed" in resp.text
        assert "allow" in resp.headers
