"""
Notification inbox and the driver-app notification endpoints.
"""

import json

import pytest

from warehouse.services import notification_service

from conftest import assignment_payload


@pytest.fixture
def shipment(client, cashier_headers, product, driver_user):
    resp = client.post(
        f"/api/products/{product.id}/to-ship",
        json=assignment_payload(driver_user),
        headers=cashier_headers,
    )
    assert resp.status_code == 201
    return resp.get_json()["toShipItem"]


def _shipment_data(driver_user):
    return {
        "product": {"id": 1, "name": "Cement Bag", "sku": "CEM-001", "quantity": 2},
        "deliveryPersonnel": {"id": driver_user.id, "fullName": driver_user.name,
                              "email": driver_user.email, "fcmToken": "tok-1"},
        "customerAddress": {"destination": "Marawoy, Lipa City, Batangas"},
        "markedBy": {"name": "Cass Cashier", "email": "cashier@lgw.test", "role": "cashier"},
    }


class TestInbox:

    def test_assignment_lands_in_driver_inbox(self, client, driver_headers, shipment):
        resp = client.get("/api/notifications", headers=driver_headers)
        data = resp.get_json()
        assert data["pagination"]["total"] == 1
        assert data["unreadCount"] == 1
        note = data["data"][0]
        assert note["type"] == "NEW_ASSIGNMENT"
        assert note["data"]["assignmentId"] == str(shipment["id"])

    def test_mark_read_only_touches_own_rows(self, client, db_session, driver_user, other_driver,
                                             driver_headers, other_driver_headers):
        own = notification_service.create_notification(driver_user.id, "info", "Hi", "Hello")
        foreign = notification_service.create_notification(other_driver.id, "info", "Hi", "Hello")

        resp = client.patch(
            "/api/notifications",
            json={"notificationIds": [own.id, foreign.id]},
            headers=driver_headers,
        )
        assert resp.get_json()["modifiedCount"] == 1

        # Marking again changes nothing
        resp = client.patch("/api/notifications", json={"notificationIds": [own.id]}, headers=driver_headers)
        assert resp.get_json()["modifiedCount"] == 0

        resp = client.get("/api/notifications?unread=true", headers=other_driver_headers)
        assert resp.get_json()["unreadCount"] == 1

    def test_mark_unread(self, client, db_session, driver_user, driver_headers):
        row = notification_service.create_notification(driver_user.id, "info", "Hi", "Hello")
        client.patch("/api/notifications", json={"notificationIds": [row.id]}, headers=driver_headers)
        resp = client.patch(
            "/api/notifications", json={"notificationIds": [row.id], "markAsRead": False}, headers=driver_headers
        )
        assert resp.get_json()["modifiedCount"] == 1

    def test_ids_must_be_list(self, client, driver_headers):
        resp = client.patch("/api/notifications", json={"notificationIds": "1"}, headers=driver_headers)
        assert resp.status_code == 400

    def test_pagination(self, client, db_session, driver_user, driver_headers):
        for i in range(3):
            notification_service.create_notification(driver_user.id, "info", f"N{i}", "body")
        resp = client.get("/api/notifications?page=2&limit=2", headers=driver_headers)
        data = resp.get_json()
        assert len(data["data"]) == 1
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}


class TestNewShipment:

    def test_streams_and_pushes(self, app, client, cashier_headers, driver_user, push_sender):
        hub = app.extensions["event_hub"]
        conn = hub.register(driver_user.id, driver_user.email)
        try:
            resp = client.post(
                "/api/notifications/newShipment",
                json={"driverEmail": driver_user.email, "shipmentData": _shipment_data(driver_user)},
                headers=cashier_headers,
            )
            assert resp.status_code == 200
            assert resp.get_json()["sent"] is True

            event = json.loads(conn.queue.get_nowait())
            assert event["type"] == "NEW_SHIPMENT"
            assert event["data"]["product"]["sku"] == "CEM-001"
            assert "timestamp" in event
        finally:
            hub.unregister(conn.id)

        assert push_sender.sent[0]["token"] == "tok-1"

    def test_offline_driver_is_not_an_error(self, client, cashier_headers, driver_user):
        resp = client.post(
            "/api/notifications/newShipment",
            json={"driverEmail": driver_user.email, "shipmentData": _shipment_data(driver_user)},
            headers=cashier_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["sent"] is False

    def test_missing_nested_fields(self, client, cashier_headers, driver_user):
        data = _shipment_data(driver_user)
        del data["product"]["sku"]
        data["customerAddress"] = {}
        resp = client.post(
            "/api/notifications/newShipment",
            json={"driverEmail": driver_user.email, "shipmentData": data},
            headers=cashier_headers,
        )
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert "product.sku" in error
        assert "customerAddress.destination" in error

    def test_missing_top_level(self, client, cashier_headers):
        resp = client.post("/api/notifications/newShipment", json={}, headers=cashier_headers)
        assert resp.status_code == 400


class TestDeliveryStarted:

    def _start(self, client, headers, shipment, email="driver@lgw.test"):
        return client.post(
            "/api/notifications/delivery-started",
            json={"deliveryId": shipment["id"], "driverName": "Dale Driver", "driverEmail": email},
            headers=headers,
        )

    def test_first_call_starts_delivery(self, client, driver_headers, cashier_headers, shipment):
        resp = self._start(client, driver_headers, shipment)
        assert resp.status_code == 200
        delivery = resp.get_json()["delivery"]
        assert delivery["status"] == "in-transit"
        first_started = delivery["startedAt"]
        assert first_started is not None

        # Idempotent: same timestamp, no second notification
        resp = self._start(client, driver_headers, shipment)
        assert resp.get_json()["delivery"]["startedAt"] == first_started

        inbox = client.get("/api/notifications", headers=cashier_headers).get_json()
        assert inbox["pagination"]["total"] == 1
        assert inbox["data"][0]["data"]["previousStatus"] == "pending"

    def test_email_mismatch(self, client, driver_headers, shipment):
        resp = self._start(client, driver_headers, shipment, email="imposter@lgw.test")
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Driver email mismatch"

    def test_unknown_delivery(self, client, driver_headers, db_session):
        resp = self._start(client, driver_headers, {"id": 9999})
        assert resp.status_code == 404

    def test_missing_fields(self, client, driver_headers):
        resp = client.post("/api/notifications/delivery-started", json={"deliveryId": 1}, headers=driver_headers)
        assert resp.status_code == 400


class TestStatusUpdate:

    def test_notifies_driver_and_assigner(self, app, client, driver_user, cashier_user, driver_headers, shipment):
        hub = app.extensions["event_hub"]
        driver_conn = hub.register(driver_user.id, driver_user.email)
        cashier_conn = hub.register(cashier_user.id, cashier_user.email)
        try:
            resp = client.post(
                "/api/notifications/status-update",
                json={"deliveryId": shipment["id"], "newStatus": "in-transit", "driverEmail": driver_user.email},
                headers=driver_headers,
            )
            assert resp.status_code == 200
            assert resp.get_json()["delivery"]["status"] == "in-transit"

            for conn in (driver_conn, cashier_conn):
                event = json.loads(conn.queue.get_nowait())
                assert event["type"] == "DELIVERY_STATUS_UPDATE"
                assert event["data"]["previousStatus"] == "pending"
                assert event["data"]["newStatus"] == "in-transit"
        finally:
            hub.unregister(driver_conn.id)
            hub.unregister(cashier_conn.id)

    def test_invalid_transition(self, client, driver_user, driver_headers, shipment):
        resp = client.post(
            "/api/notifications/status-update",
            json={"deliveryId": shipment["id"], "newStatus": "delivered", "driverEmail": driver_user.email},
            headers=driver_headers,
        )
        assert resp.status_code == 400
