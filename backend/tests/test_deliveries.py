"""
Shipment assignment and the delivery lifecycle.

Verifies:
- Assignment reserves stock and creates the shipment atomically
- Geocoding and push notification are best effort
- Status transitions follow the state machine and archive terminal deliveries
- Drivers only see and update their own deliveries
- Cleanup archives stragglers and purges after the retention window
"""

from datetime import timedelta

import pytest

from warehouse.models import ArchivedDelivery, Driver, Product, ToShip
from warehouse.services import delivery_service
from warehouse.time_utils import utcnow

from conftest import assignment_payload


def _assign(client, headers, product, driver, **overrides):
    return client.post(
        f"/api/products/{product.id}/to-ship",
        json=assignment_payload(driver, **overrides),
        headers=headers,
    )


@pytest.fixture
def shipment(client, cashier_headers, product, driver_user):
    resp = _assign(client, cashier_headers, product, driver_user)
    assert resp.status_code == 201
    return resp.get_json()["toShipItem"]


# =============================================================================
# ASSIGNMENT
# =============================================================================


class TestAssignShipment:

    def test_assignment_reserves_stock(self, client, cashier_headers, product, driver_user, db_session):
        resp = _assign(client, cashier_headers, product, driver_user)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["updatedStock"] == 7
        assert data["geocodingSuccess"] is False

        item = data["toShipItem"]
        assert item["status"] == "pending"
        assert item["product"] == {"name": "Cement Bag", "image": "", "quantity": 3, "sku": "CEM-001"}
        assert item["driver"]["email"] == "driver@lgw.test"
        assert item["markedBy"]["role"] == "cashier"
        assert [n["type"] for n in item["notifications"]] == ["assigned"]

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 7

    def test_toship_endpoint_takes_product_from_body(self, client, admin_headers, product, driver_user):
        resp = client.post(
            "/api/toship",
            json=assignment_payload(driver_user, productId=product.id),
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["updatedStock"] == 7

    def test_geocoded_destination(self, client, cashier_headers, product, driver_user, geocoder):
        geocoder.results["poblacion, batangas city, batangas"] = {"lat": 13.75, "lng": 121.05}
        resp = _assign(client, cashier_headers, product, driver_user)
        data = resp.get_json()
        assert data["geocodingSuccess"] is True
        assert data["toShipItem"]["customerAddress"]["coordinates"] == {"lat": 13.75, "lng": 121.05}

    def test_client_coordinates_skip_geocoder(self, client, cashier_headers, product, driver_user, geocoder):
        resp = _assign(client, cashier_headers, product, driver_user, coordinates={"lat": 14.1, "lng": 121.2})
        assert resp.get_json()["geocodingSuccess"] is True
        assert geocoder.calls == []

    def test_insufficient_stock_creates_nothing(self, client, cashier_headers, product, driver_user, db_session):
        resp = _assign(client, cashier_headers, product, driver_user, quantity=11)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Insufficient stock. Available: 10, Requested: 11"

        db_session.expire_all()
        assert db_session.query(ToShip).count() == 0
        assert db_session.get(Product, product.id).stock == 10

    def test_assigning_all_stock_marks_out_of_stock(self, client, cashier_headers, product, driver_user, db_session):
        _assign(client, cashier_headers, product, driver_user, quantity=10)
        db_session.expire_all()
        assert db_session.get(Product, product.id).status == "out-of-stock"

    @pytest.mark.parametrize("quantity", [0, -1, "two", None])
    def test_invalid_quantity(self, client, cashier_headers, product, driver_user, quantity):
        resp = _assign(client, cashier_headers, product, driver_user, quantity=quantity)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Valid quantity is required"

    def test_missing_destination(self, client, cashier_headers, product, driver_user):
        resp = _assign(client, cashier_headers, product, driver_user, destination="  ")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Delivery personnel and destination are required"

    def test_personnel_must_be_delivery_user(self, client, cashier_headers, product, plain_user):
        resp = _assign(client, cashier_headers, product, plain_user)
        assert resp.status_code == 400

    def test_unknown_product(self, client, cashier_headers, driver_user, db_session):
        resp = client.post(
            "/api/products/999/to-ship", json=assignment_payload(driver_user), headers=cashier_headers
        )
        assert resp.status_code == 404

    def test_push_uses_registered_token(self, client, cashier_headers, product, driver_user, push_sender, db_session):
        db_session.add(Driver(user_id=driver_user.id, fcm_token="device-token-1"))
        db_session.commit()

        resp = _assign(client, cashier_headers, product, driver_user)
        assert resp.status_code == 201

        assert len(push_sender.sent) == 1
        assert push_sender.sent[0]["token"] == "device-token-1"
        assert push_sender.sent[0]["title"] == "New Shipment Assigned"

        db_session.expire_all()
        shipment = db_session.query(ToShip).one()
        assert [n.type for n in shipment.notifications] == ["assigned", "notification_sent"]

    def test_no_token_no_push(self, client, cashier_headers, product, driver_user, push_sender):
        resp = _assign(client, cashier_headers, product, driver_user)
        assert resp.status_code == 201
        assert push_sender.sent == []

    def test_push_failure_does_not_fail_assignment(self, client, cashier_headers, product, driver_user, push_sender):
        def boom(*args, **kwargs):
            raise RuntimeError("FCM down")
        push_sender.send = boom

        resp = _assign(client, cashier_headers, product, driver_user,
                       deliveryPersonnel={"id": driver_user.id, "fcmToken": "tok"})
        assert resp.status_code == 201


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================


class TestStatusTransitions:

    def test_driver_moves_through_lifecycle(self, client, driver_headers, shipment, db_session):
        resp = client.patch(
            f"/api/deliveries/{shipment['id']}", json={"status": "in-transit"}, headers=driver_headers
        )
        assert resp.status_code == 200
        delivery = resp.get_json()["delivery"]
        assert delivery["status"] == "in-transit"
        assert delivery["startedAt"] is not None

        resp = client.patch(
            f"/api/deliveries/{shipment['id']}", json={"status": "delivered"}, headers=driver_headers
        )
        delivery = resp.get_json()["delivery"]
        assert delivery["status"] == "delivered"
        assert delivery["deliveredAt"] is not None
        assert delivery["completedAt"] is not None

        db_session.expire_all()
        archived = db_session.query(ArchivedDelivery).one()
        assert archived.original_id == shipment["id"]
        assert archived.status == "delivered"
        assert archived.closed_by_email == "driver@lgw.test"
        # Still visible to tracking until cleanup
        assert db_session.get(ToShip, shipment["id"]) is not None

    def test_same_status_is_noop(self, client, driver_headers, shipment):
        resp = client.patch(
            f"/api/deliveries/{shipment['id']}", json={"status": "pending"}, headers=driver_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Status unchanged"

    @pytest.mark.parametrize("path", [["delivered"], ["in-transit", "pending"], ["cancelled", "in-transit"]])
    def test_invalid_transitions(self, client, driver_headers, shipment, path):
        *setup, final = path
        for status in setup:
            client.patch(f"/api/deliveries/{shipment['id']}", json={"status": status}, headers=driver_headers)
        resp = client.patch(
            f"/api/deliveries/{shipment['id']}", json={"status": final}, headers=driver_headers
        )
        assert resp.status_code == 400
        assert "Cannot change status" in resp.get_json()["error"]

    def test_unknown_status(self, client, driver_headers, shipment):
        resp = client.patch(
            f"/api/deliveries/{shipment['id']}", json={"status": "lost"}, headers=driver_headers
        )
        assert resp.status_code == 400

    def test_cancel_keeps_stock_reserved(self, client, cashier_headers, shipment, product, db_session):
        resp = client.patch(
            f"/api/deliveries/{shipment['id']}", json={"status": "cancelled"}, headers=cashier_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["delivery"]["cancelledAt"] is not None

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 7
        assert db_session.query(ArchivedDelivery).filter_by(status="cancelled").count() == 1

    def test_other_driver_denied(self, client, other_driver_headers, shipment):
        resp = client.patch(
            f"/api/deliveries/{shipment['id']}", json={"status": "in-transit"}, headers=other_driver_headers
        )
        assert resp.status_code == 403

    def test_driver_email_must_match(self, client, cashier_headers, shipment):
        resp = client.patch(
            f"/api/deliveries/{shipment['id']}",
            json={"status": "in-transit", "driverEmail": "someone@lgw.test"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_missing_delivery(self, client, driver_headers, db_session):
        resp = client.patch("/api/deliveries/4040", json={"status": "in-transit"}, headers=driver_headers)
        assert resp.status_code == 404

    def test_status_change_notifies_inbox(self, client, driver_headers, cashier_headers, shipment):
        client.patch(f"/api/deliveries/{shipment['id']}", json={"status": "in-transit"}, headers=driver_headers)

        resp = client.get("/api/notifications", headers=cashier_headers)
        data = resp.get_json()
        assert data["unreadCount"] == 1
        assert data["data"][0]["type"] == "DELIVERY_STATUS_UPDATE"
        assert data["data"][0]["data"]["newStatus"] == "in-transit"


# =============================================================================
# QUERIES
# =============================================================================


class TestDeliveryQueries:

    def test_assigned_defaults_to_active(self, client, driver_headers, shipment):
        resp = client.get("/api/deliveries/assigned", headers=driver_headers)
        assert resp.status_code == 200
        assert [d["id"] for d in resp.get_json()] == [shipment["id"]]

        client.patch(f"/api/deliveries/{shipment['id']}", json={"status": "cancelled"}, headers=driver_headers)
        assert client.get("/api/deliveries/assigned", headers=driver_headers).get_json() == []

        resp = client.get("/api/deliveries/assigned?status=cancelled", headers=driver_headers)
        assert len(resp.get_json()) == 1

    def test_assigned_invalid_status_filter(self, client, driver_headers, db_session):
        resp = client.get("/api/deliveries/assigned?status=pending,flying", headers=driver_headers)
        assert resp.status_code == 400

    def test_driver_cannot_read_other_driver(self, client, other_driver_headers, shipment):
        resp = client.get(
            "/api/deliveries/assigned?driverEmail=driver@lgw.test", headers=other_driver_headers
        )
        assert resp.status_code == 403

    def test_staff_reads_any_driver(self, client, cashier_headers, shipment):
        resp = client.get("/api/deliveries/assigned?driverEmail=DRIVER@lgw.test", headers=cashier_headers)
        assert len(resp.get_json()) == 1

    def test_track_deliveries(self, client, admin_headers, shipment):
        resp = client.get("/api/deliveries/track-deliveries", headers=admin_headers)
        assert [d["id"] for d in resp.get_json()] == [shipment["id"]]

        resp = client.get(f"/api/deliveries/track-deliveries?deliveryId={shipment['id']}", headers=admin_headers)
        assert resp.get_json()["id"] == shipment["id"]

        resp = client.get("/api/deliveries/track-deliveries?deliveryId=x", headers=admin_headers)
        assert resp.status_code == 400

    def test_archived_list_and_count(self, client, driver_headers, other_driver_headers, shipment):
        client.patch(f"/api/deliveries/{shipment['id']}", json={"status": "cancelled"}, headers=driver_headers)

        resp = client.get("/api/deliveries/archived/list?limit=5", headers=driver_headers)
        data = resp.get_json()
        assert data["totalCount"] == 1
        assert data["hasMore"] is False
        assert data["deliveries"][0]["originalId"] == shipment["id"]

        assert client.get("/api/deliveries/archived/count", headers=driver_headers).get_json() == {"count": 1}
        assert client.get("/api/deliveries/archived/count", headers=other_driver_headers).get_json() == {"count": 0}


# =============================================================================
# CLEANUP
# =============================================================================


class TestCleanup:

    def test_cleanup_purges_after_retention(self, client, admin_headers, driver_headers, shipment, db_session):
        client.patch(f"/api/deliveries/{shipment['id']}", json={"status": "cancelled"}, headers=driver_headers)

        # Inside the window nothing is deleted
        resp = client.post("/api/deliveries/auto-cleanup", headers=admin_headers)
        assert resp.get_json() == {"success": True, "archivedCount": 0, "deletedCount": 0}

        db_session.expire_all()
        row = db_session.get(ToShip, shipment["id"])
        row.completed_at = utcnow() - timedelta(days=8)
        db_session.commit()

        resp = client.post("/api/deliveries/auto-cleanup", headers=admin_headers)
        assert resp.get_json()["deletedCount"] == 1

        db_session.expire_all()
        assert db_session.get(ToShip, shipment["id"]) is None
        assert db_session.query(ArchivedDelivery).count() == 1

    def test_cleanup_archives_missed_terminal_rows(self, db_session, shipment):
        row = db_session.get(ToShip, shipment["id"])
        row.status = "delivered"
        db_session.commit()

        result = delivery_service.cleanup_deliveries(retention_days=7)
        assert result == {"archivedCount": 1, "deletedCount": 0}

        # Idempotent
        assert delivery_service.cleanup_deliveries(retention_days=7) == {"archivedCount": 0, "deletedCount": 0}
        assert db_session.query(ArchivedDelivery).count() == 1

    def test_existing_snapshot_restamps_archived_at(self, client, cashier_headers, db_session, shipment):
        client.patch(f"/api/deliveries/{shipment['id']}", json={"status": "cancelled"}, headers=cashier_headers)

        db_session.expire_all()
        row = db_session.get(ToShip, shipment["id"])
        row.archived_at = None
        db_session.commit()

        assert delivery_service.cleanup_deliveries(retention_days=7)["archivedCount"] == 1
        assert delivery_service.cleanup_deliveries(retention_days=7)["archivedCount"] == 0

        db_session.expire_all()
        snapshot = db_session.query(ArchivedDelivery).filter_by(original_id=shipment["id"]).one()
        assert db_session.get(ToShip, shipment["id"]).archived_at == snapshot.archived_at

    def test_active_deliveries_never_purged(self, db_session, shipment):
        result = delivery_service.cleanup_deliveries(retention_days=0, now=utcnow() + timedelta(days=30))
        assert result["deletedCount"] == 0
        assert db_session.get(ToShip, shipment["id"]) is not None


# =============================================================================
# DRIVERS
# =============================================================================


class TestDrivers:

    def test_driver_registers_own_token(self, client, driver_user, driver_headers, cashier_headers):
        resp = client.put(f"/api/drivers/{driver_user.id}", json={"fcmToken": "abc"}, headers=driver_headers)
        assert resp.status_code == 200
        assert resp.get_json()["fcmToken"] == "abc"

        resp = client.get("/api/drivers", headers=cashier_headers)
        assert resp.get_json() == [{
            "id": driver_user.id,
            "name": "Dale Driver",
            "fullName": "Dale Driver",
            "email": "driver@lgw.test",
            "fcmToken": "abc",
        }]

    def test_driver_cannot_touch_other_record(self, client, driver_headers, other_driver):
        resp = client.put(f"/api/drivers/{other_driver.id}", json={"fcmToken": "x"}, headers=driver_headers)
        assert resp.status_code == 403

    def test_unknown_driver_record_is_null(self, client, driver_user, driver_headers):
        resp = client.get(f"/api/drivers/{driver_user.id}", headers=driver_headers)
        assert resp.status_code == 200
        assert resp.get_json() is None
