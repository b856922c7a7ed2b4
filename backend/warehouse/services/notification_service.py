# Overview: Service-layer operations for notifications; user inbox plus live/push fan-out.

"""
Notification Service

Two channels:
- Inbox rows (Notification table) so offline users still see what happened
- Live stream events through the EventHub, and mobile push via FCM

Fan-out helpers run after the business transaction has committed. They log
and swallow every failure: a notification problem never fails the request
that triggered it.
"""

from __future__ import annotations

import json

from flask import current_app

from ..extensions import db
from ..events import get_event_hub
from ..models import Notification, ToShip, User
from ..models.deliveries import NOTIFICATION_SENT
from . import push_service
from warehouse.time_utils import to_utc_z, utcnow


EVENT_NEW_ASSIGNMENT = "NEW_ASSIGNMENT"
EVENT_NEW_SHIPMENT = "NEW_SHIPMENT"
EVENT_STATUS_UPDATE = "DELIVERY_STATUS_UPDATE"

MAX_PAGE_SIZE = 100


# =============================================================================
# INBOX
# =============================================================================

def create_notification(
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: dict | None = None,
    *,
    commit: bool = True,
) -> Notification:
    now = utcnow()
    row = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data_json=json.dumps(data) if data else None,
        read=False,
        created_at=now,
        updated_at=now,
    )
    db.session.add(row)
    if commit:
        db.session.commit()
    return row


def list_notifications(user_id: int, *, page: int = 1, limit: int = 20, unread_only: bool = False) -> dict:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = db.session.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))

    total = query.count()
    rows = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    unread_count = db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).count()

    return {
        "data": [r.to_dict() for r in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": -(-total // limit),
        },
        "unreadCount": unread_count,
    }


def mark_notifications(user_id: int, notification_ids: list[int], read: bool = True) -> int:
    """Only the caller's own rows are touched. Returns the number modified."""
    if not notification_ids:
        return 0
    modified = db.session.query(Notification).filter(
        Notification.id.in_(notification_ids),
        Notification.user_id == user_id,
        Notification.read != read,
    ).update(
        {Notification.read: read, Notification.updated_at: utcnow()},
        synchronize_session=False,
    )
    db.session.commit()
    return modified


# =============================================================================
# FAN-OUT
# =============================================================================

def publish_event(user_email: str, payload: dict) -> bool:
    try:
        return get_event_hub().publish(user_email, payload)
    except Exception:
        current_app.logger.exception("Failed to publish %s to %s", payload.get("type"), user_email)
        return False


def send_push(token: str | None, details: dict) -> bool:
    if not token:
        return False
    try:
        return push_service.send_shipment_notification(token, details) is not None
    except Exception:
        current_app.logger.exception("Failed to send push notification")
        return False


def _inbox_safely(user_id: int | None, type: str, title: str, message: str, data: dict) -> None:
    if not user_id:
        return
    try:
        create_notification(user_id, type, title, message, data)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to write notification for user %s", user_id)


def notify_assignment(shipment: ToShip, *, geocoded: dict | None = None) -> dict:
    """
    After a shipment is committed: stream NEW_ASSIGNMENT to the driver, write the
    driver's inbox row and send a push when a token is known. A successful push
    appends a notification_sent entry to the shipment.
    """
    event_data = {
        "assignmentId": str(shipment.id),
        "productName": shipment.product_name,
        "productImage": shipment.product_image,
        "quantity": shipment.quantity,
        "destination": shipment.destination,
        "destinationCoordinates": geocoded,
        "note": shipment.note,
        "assignedBy": shipment.marked_by_name,
    }
    streamed = publish_event(shipment.delivery_personnel_email, {"type": EVENT_NEW_ASSIGNMENT, "data": event_data})

    _inbox_safely(
        shipment.delivery_personnel_id,
        EVENT_NEW_ASSIGNMENT,
        "New Shipment Assigned",
        f"{shipment.quantity} x {shipment.product_name} to {shipment.destination}",
        event_data,
    )

    pushed = send_push(shipment.delivery_personnel_fcm_token, {
        "productName": shipment.product_name,
        "quantity": shipment.quantity,
        "destination": shipment.destination,
        "estimatedDelivery": to_utc_z(shipment.estimated_delivery),
    })
    if pushed:
        try:
            shipment.add_notification(NOTIFICATION_SENT)
            db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to record push for shipment %s", shipment.id)

    return {"streamed": streamed, "pushed": pushed}


def notify_status_change(shipment: ToShip, previous_status: str) -> dict:
    """Stream DELIVERY_STATUS_UPDATE and write inbox rows for both driver and assigner."""
    data = {
        "assignmentId": str(shipment.id),
        "deliveryId": str(shipment.id),
        "productName": shipment.product_name,
        "driverName": shipment.delivery_personnel_full_name,
        "previousStatus": previous_status,
        "newStatus": shipment.status,
        "destination": shipment.destination,
    }
    payload = {"type": EVENT_STATUS_UPDATE, "data": data}
    message = f"{shipment.product_name} is now {shipment.status} ({shipment.delivery_personnel_full_name})"

    driver_sent = publish_event(shipment.delivery_personnel_email, payload)
    assigner_sent = False
    if shipment.marked_by_email.lower() != shipment.delivery_personnel_email.lower():
        assigner_sent = publish_event(shipment.marked_by_email, payload)

    _inbox_safely(shipment.delivery_personnel_id, EVENT_STATUS_UPDATE, "Delivery Status Updated", message, data)

    assigner_id = shipment.marked_by_user_id
    if assigner_id is None:
        assigner = db.session.query(User).filter(User.email == shipment.marked_by_email.lower()).first()
        assigner_id = assigner.id if assigner else None
    if assigner_id != shipment.delivery_personnel_id:
        _inbox_safely(assigner_id, EVENT_STATUS_UPDATE, "Delivery Status Updated", message, data)

    return {"driver": driver_sent, "assigner": assigner_sent}


def announce_shipment(driver_email: str, shipment_data: dict) -> bool:
    """
    Stream-and-push only announcement of a shipment built by the client.
    Nothing is persisted.
    """
    sent = publish_event(driver_email, {"type": EVENT_NEW_SHIPMENT, "data": shipment_data})

    product = shipment_data.get("product") or {}
    personnel = shipment_data.get("deliveryPersonnel") or {}
    address = shipment_data.get("customerAddress") or {}
    send_push(personnel.get("fcmToken"), {
        "productName": product.get("name"),
        "quantity": product.get("quantity"),
        "destination": address.get("destination"),
        "estimatedDelivery": shipment_data.get("estimatedDelivery"),
    })
    return sent


def missing_shipment_fields(shipment_data: dict) -> list[str]:
    """Dotted names of required fields absent from a client-built shipment payload."""
    if not isinstance(shipment_data, dict):
        return ["shipmentData"]

    required = {
        "product": ("id", "name", "sku", "quantity"),
        "deliveryPersonnel": ("id", "fullName", "email"),
        "customerAddress": ("destination",),
        "markedBy": ("name", "email", "role"),
    }
    missing = []
    for section, keys in required.items():
        block = shipment_data.get(section)
        if not isinstance(block, dict):
            block = {}
        for key in keys:
            if block.get(key) in (None, ""):
                missing.append(f"{section}.{key}")
    return missing
