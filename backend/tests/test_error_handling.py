"""
Unexpected failures inside a handler become JSON 500 responses.

Each case makes one service call raise and checks that the route logs the
failure and answers with an {"error": ...} body instead of Flask's HTML page.
"""

import pytest

from warehouse.services import (
    auth_service,
    categories_service,
    delivery_service,
    driver_service,
    history_service,
    location_service,
    notification_service,
    products_service,
    rate_limit_service,
)


def _fail(*args, **kwargs):
    raise RuntimeError("database unavailable")


def _assert_json_500(resp, message):
    assert resp.status_code == 500
    assert resp.is_json
    assert resp.get_json()["error"] == message


# =============================================================================
# STAFF READS AND WRITES
# =============================================================================


class TestCatalogFailures:

    @pytest.mark.parametrize(
        "method,path,target,name,message",
        [
            ("GET", "/api/products", products_service, "list_products", "Failed to fetch products"),
            ("GET", "/api/products/1", products_service, "get_product", "Failed to fetch product"),
            ("DELETE", "/api/products/1", products_service, "delete_product", "Failed to delete product"),
            ("GET", "/api/categories", categories_service, "list_categories", "Failed to fetch categories"),
            ("DELETE", "/api/product-history/1", history_service, "delete_history_entry",
             "Failed to delete history entry"),
        ],
    )
    def test_returns_json_500(self, client, admin_headers, monkeypatch, method, path, target, name, message):
        monkeypatch.setattr(target, name, _fail)
        resp = getattr(client, method.lower())(path, headers=admin_headers)
        _assert_json_500(resp, message)

    def test_failure_is_logged(self, app, client, admin_headers, monkeypatch, caplog):
        monkeypatch.setattr(products_service, "list_products", _fail)
        with caplog.at_level("ERROR", logger=app.logger.name):
            client.get("/api/products", headers=admin_headers)
        assert "Failed to fetch products" in caplog.text


class TestDeliveryFailures:

    @pytest.mark.parametrize(
        "path,name,message",
        [
            ("/api/deliveries/assigned", "list_assigned", "Failed to fetch assigned deliveries"),
            ("/api/deliveries/track-deliveries", "list_all", "Failed to fetch deliveries"),
            ("/api/deliveries/track-deliveries?deliveryId=1", "get_delivery", "Failed to fetch deliveries"),
            ("/api/deliveries/archived/list", "list_archived", "Failed to fetch archived deliveries"),
            ("/api/deliveries/archived/count", "count_archived", "Failed to count archived deliveries"),
        ],
    )
    def test_returns_json_500(self, client, cashier_headers, monkeypatch, path, name, message):
        monkeypatch.setattr(delivery_service, name, _fail)
        _assert_json_500(client.get(path, headers=cashier_headers), message)

    def test_driver_routes(self, client, admin_headers, monkeypatch):
        monkeypatch.setattr(driver_service, "list_drivers", _fail)
        monkeypatch.setattr(driver_service, "get_driver", _fail)
        monkeypatch.setattr(driver_service, "upsert_token", _fail)

        _assert_json_500(client.get("/api/drivers", headers=admin_headers), "Failed to fetch drivers")
        _assert_json_500(client.get("/api/drivers/1", headers=admin_headers), "Failed to fetch driver")
        _assert_json_500(
            client.put("/api/drivers/1", json={"fcmToken": "tok"}, headers=admin_headers),
            "Failed to update driver",
        )


# =============================================================================
# SIGNED-IN USER ROUTES
# =============================================================================


class TestInboxFailures:

    def test_list(self, client, driver_headers, monkeypatch):
        monkeypatch.setattr(notification_service, "list_notifications", _fail)
        _assert_json_500(client.get("/api/notifications", headers=driver_headers), "Failed to fetch notifications")

    def test_mark(self, client, driver_headers, monkeypatch):
        monkeypatch.setattr(notification_service, "mark_notifications", _fail)
        resp = client.patch("/api/notifications", json={"notificationIds": [1]}, headers=driver_headers)
        _assert_json_500(resp, "Failed to update notifications")


class TestAdminFailures:

    def test_list_users(self, client, admin_headers, monkeypatch):
        monkeypatch.setattr(auth_service, "list_users", _fail)
        _assert_json_500(client.get("/api/admin/users", headers=admin_headers), "Internal server error")

    def test_ban(self, client, admin_headers, driver_user, monkeypatch):
        monkeypatch.setattr(auth_service, "set_banned", _fail)
        resp = client.post(f"/api/admin/users/{driver_user.id}/ban", headers=admin_headers)
        _assert_json_500(resp, "Internal server error")


class TestPublicAndStreamFailures:

    def test_rate_limit_check(self, client, db_session, monkeypatch):
        monkeypatch.setattr(rate_limit_service, "check", _fail)
        resp = client.post("/api/check-rate-limit", json={"key": "k", "window": 60, "max": 5})
        _assert_json_500(resp, "Internal server error")

    def test_locations(self, client, driver_headers, monkeypatch):
        monkeypatch.setattr(location_service, "search_locations", _fail)
        _assert_json_500(client.get("/api/locations/batangas", headers=driver_headers), "Failed to load locations")

    def test_stream_registration(self, app, client, driver_user, driver_headers, monkeypatch):
        monkeypatch.setattr(app.extensions["event_hub"], "register", _fail)
        resp = client.get(
            f"/api/sse?userId={driver_user.id}&userEmail={driver_user.email}", headers=driver_headers
        )
        _assert_json_500(resp, "Internal server error")
