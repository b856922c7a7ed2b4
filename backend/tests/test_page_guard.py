"""
Page guard: redirects for unauthenticated users and for roles without access.
"""

import pytest


class TestPageGuard:

    def test_public_page_without_session(self, client, db_session):
        resp = client.get("/sign-in")
        assert resp.status_code == 200

    @pytest.mark.parametrize("path", ["/dashboard", "/deliveries/overview", "/settings", "/"])
    def test_redirects_to_sign_in(self, client, db_session, path):
        resp = client.get(path)
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/sign-in")

    def test_api_paths_not_guarded(self, client, db_session):
        # API routes answer with JSON 401, never a redirect
        resp = client.get("/api/products")
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "headers_fixture,path,landing",
        [
            ("driver_headers", "/dashboard", "/deliveries/overview"),
            ("driver_headers", "/manage-product", "/deliveries/overview"),
            ("cashier_headers", "/manage-users", "/dashboard"),
            ("cashier_headers", "/history", "/dashboard"),
            ("user_headers", "/deliveries", "/settings"),
            ("admin_headers", "/", "/dashboard"),
        ],
    )
    def test_redirects_to_role_landing(self, request, client, headers_fixture, path, landing):
        headers = request.getfixturevalue(headers_fixture)
        resp = client.get(path, headers=headers)
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith(landing)

    @pytest.mark.parametrize(
        "headers_fixture,path",
        [
            ("admin_headers", "/manage-users"),
            ("admin_headers", "/history"),
            ("cashier_headers", "/manage-product"),
            ("cashier_headers", "/deliveries/assignments"),
            ("driver_headers", "/deliveries/overview"),
            ("driver_headers", "/settings"),
            ("user_headers", "/settings"),
        ],
    )
    def test_allowed_pages_render(self, request, client, headers_fixture, path):
        headers = request.getfixturevalue(headers_fixture)
        resp = client.get(path, headers=headers)
        assert resp.status_code == 200
        assert b"LGW Warehouse" in resp.data

    def test_banned_user_sent_to_sign_in(self, client, db_session, driver_user, driver_headers):
        driver_user.banned = True
        db_session.commit()
        resp = client.get("/deliveries", headers=driver_headers)
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/sign-in")
