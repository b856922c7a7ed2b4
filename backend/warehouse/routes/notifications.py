# Overview: Flask API routes for the notification inbox and delivery notification triggers.

"""
Notification routes.

- GET/PATCH /api/notifications: the caller's inbox
- POST /api/notifications/newShipment: stream + push announcement, nothing persisted
- POST /api/notifications/delivery-started: idempotent start signal from the driver app
- POST /api/notifications/status-update: status transition with dual notification
"""

from flask import Blueprint, request, g, current_app

from ..services import delivery_service, notification_service
from ..services.delivery_service import AccessDeniedError, InvalidTransitionError
from ..validation import ValidationError, NotFoundError, parse_identifier, parse_int
from ..decorators import require_auth

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications():
    """Query params: page (1), limit (20), unread=true for unread only"""
    try:
        return notification_service.list_notifications(
            g.current_user.id,
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 20, type=int),
            unread_only=request.args.get("unread", "").lower() == "true",
        )
    except Exception:
        current_app.logger.exception("Failed to fetch notifications")
        return {"error": "Failed to fetch notifications"}, 500


@notifications_bp.patch("")
@require_auth
def mark_notifications():
    """Body: {notificationIds: [...], markAsRead: bool = true}"""
    payload = request.get_json(silent=True) or {}
    ids = payload.get("notificationIds")
    if not isinstance(ids, list):
        return {"error": "notificationIds must be an array"}, 400
    try:
        parsed = [parse_int(i, "notificationId") for i in ids]
        modified = notification_service.mark_notifications(
            g.current_user.id, parsed, read=payload.get("markAsRead") is not False,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update notifications")
        return {"error": "Failed to update notifications"}, 500

    return {
        "success": True,
        "message": f"{modified} notifications updated",
        "modifiedCount": modified,
    }


@notifications_bp.post("/newShipment")
@require_auth
def new_shipment():
    payload = request.get_json(silent=True) or {}
    driver_email = payload.get("driverEmail")
    shipment_data = payload.get("shipmentData")

    if not driver_email or not shipment_data:
        return {"error": "Missing required fields: driverEmail, shipmentData"}, 400

    missing = notification_service.missing_shipment_fields(shipment_data)
    if missing:
        return {"error": f"Missing required fields: {', '.join(missing)}"}, 400

    try:
        sent = notification_service.announce_shipment(driver_email, shipment_data)
    except Exception:
        current_app.logger.exception("Failed to process shipment notification")
        return {"error": "Internal server error"}, 500
    return {"success": True, "sent": sent, "message": "Shipment notification processed"}


def _load_for_driver(delivery_id, driver_email):
    shipment = delivery_service.get_delivery(parse_identifier(delivery_id, "delivery"))
    if not delivery_service.is_assigned_driver(shipment, driver_email):
        raise AccessDeniedError("Driver email mismatch")
    return shipment


@notifications_bp.post("/delivery-started")
@require_auth
def delivery_started():
    payload = request.get_json(silent=True) or {}
    delivery_id = payload.get("deliveryId")
    driver_name = payload.get("driverName")
    driver_email = payload.get("driverEmail")

    if not delivery_id or not driver_name or not driver_email:
        return {"error": "Missing required fields: deliveryId, driverName, driverEmail"}, 400

    try:
        shipment = _load_for_driver(delivery_id, driver_email)
        shipment, changed = delivery_service.start_delivery(delivery_id=shipment.id, actor=g.current_user)
    except (ValidationError, InvalidTransitionError) as e:
        return {"error": str(e)}, 400
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except NotFoundError:
        return {"error": "Delivery assignment not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to process delivery started notification")
        return {"error": "Internal server error"}, 500

    if changed:
        notification_service.notify_status_change(shipment, "pending")
    current_app.logger.info(
        "Delivery started: id=%s driver=%s product=%s", shipment.id, driver_name, shipment.product_name
    )

    return {
        "message": "Delivery started notification processed successfully",
        "delivery": {
            "id": shipment.id,
            "productName": shipment.product_name,
            "driverName": shipment.delivery_personnel_full_name,
            "destination": shipment.destination,
            "status": shipment.status,
            "startedAt": shipment.to_dict()["startedAt"],
        },
    }


@notifications_bp.post("/status-update")
@require_auth
def status_update():
    payload = request.get_json(silent=True) or {}
    delivery_id = payload.get("deliveryId")
    new_status = payload.get("newStatus")
    driver_email = payload.get("driverEmail")

    if not delivery_id or not new_status or not driver_email:
        return {"error": "Missing required fields"}, 400

    try:
        shipment = _load_for_driver(delivery_id, driver_email)
        shipment, previous, changed = delivery_service.update_status(
            delivery_id=shipment.id, new_status=new_status, actor=g.current_user,
        )
    except (ValidationError, InvalidTransitionError) as e:
        return {"error": str(e)}, 400
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update delivery status")
        return {"error": "Internal server error"}, 500

    if changed:
        notification_service.notify_status_change(shipment, previous)

    return {"success": True, "delivery": shipment.to_dict()}
