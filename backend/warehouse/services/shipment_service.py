"""
Shipment Assignment Service

Staff assign a quantity of a product to a delivery-role user. The ToShip
insert and the stock decrement commit together under a row lock on the
product, the same way a direct sale does. Notifications go out only after
the commit (see notification_service.notify_assignment).
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Driver, ToShip, User
from ..models.deliveries import NOTIFICATION_ASSIGNED, STATUS_PENDING
from ..permissions import Role
from ..validation import ValidationError, parse_int, require_positive_quantity
from warehouse.time_utils import parse_iso_datetime, utcnow
from .concurrency import run_with_retry
from .location_service import get_geocoder
from .sales_service import lock_product, take_stock


@dataclass
class ShipmentRequest:
    quantity: int
    driver: User
    destination: str
    note: str
    estimated_delivery: object
    fcm_token: str | None
    coordinates: dict | None


def _coordinates_from_body(raw) -> dict | None:
    if not isinstance(raw, dict):
        return None
    try:
        lat = float(raw.get("lat"))
        lng = float(raw.get("lng"))
    except (TypeError, ValueError):
        return None
    return {"lat": lat, "lng": lng}


def parse_shipment_request(payload: dict) -> ShipmentRequest:
    """
    Validate an assignment payload:
    quantity, deliveryPersonnel {id or email, fcmToken?}, destination, note?,
    estimatedDelivery?, coordinates?

    The driver must be an existing, non-banned delivery-role user.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    quantity = require_positive_quantity(payload.get("quantity"), "Valid quantity is required")

    personnel = payload.get("deliveryPersonnel")
    destination = payload.get("destination")
    destination = destination.strip() if isinstance(destination, str) else ""

    if not isinstance(personnel, dict) or not (personnel.get("id") or personnel.get("email")) or not destination:
        raise ValidationError("Delivery personnel and destination are required")

    driver = None
    if personnel.get("id") not in (None, ""):
        driver_id = parse_int(personnel.get("id"), "deliveryPersonnel.id")
        driver = db.session.get(User, driver_id)
    else:
        email = str(personnel.get("email")).strip().lower()
        driver = db.session.query(User).filter(User.email == email).first()

    if driver is None or driver.role != Role.DELIVERY.value or driver.banned:
        raise ValidationError("Delivery personnel must be an active delivery user")

    if len(destination) > ToShip.__table__.c.destination.type.length:
        raise ValidationError("Destination is too long")

    note = payload.get("note") or ""
    note = note.strip() if isinstance(note, str) else ""

    try:
        estimated = parse_iso_datetime(payload.get("estimatedDelivery"))
    except ValueError:
        raise ValidationError("estimatedDelivery must be an ISO-8601 datetime")

    token = personnel.get("fcmToken")
    token = token.strip() if isinstance(token, str) and token.strip() else None

    return ShipmentRequest(
        quantity=quantity,
        driver=driver,
        destination=destination,
        note=note,
        estimated_delivery=estimated,
        fcm_token=token,
        coordinates=_coordinates_from_body(payload.get("coordinates")),
    )


def _driver_token(driver: User) -> str | None:
    record = db.session.query(Driver).filter_by(user_id=driver.id).first()
    return record.fcm_token if record and record.fcm_token else None


def assign_shipment(*, product_id: int, request: ShipmentRequest, actor: User) -> tuple[ToShip, bool]:
    """
    Reserve stock and create the ToShip record in one transaction.

    Returns (shipment, geocoded) where geocoded tells whether coordinates were
    resolved. Raises NotFoundError, InsufficientStockError.
    """
    coordinates = request.coordinates
    if coordinates is None:
        result = get_geocoder().geocode(request.destination)
        if result:
            coordinates = {"lat": result["lat"], "lng": result["lng"]}

    fcm_token = request.fcm_token or _driver_token(request.driver)
    driver = request.driver

    def _op():
        try:
            product = lock_product(product_id)
            take_stock(product, request.quantity, actor)

            shipment = ToShip(
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                product_image=product.image or "",
                quantity=request.quantity,
                delivery_personnel_id=driver.id,
                delivery_personnel_full_name=driver.name.strip(),
                delivery_personnel_email=driver.email.strip().lower(),
                delivery_personnel_fcm_token=fcm_token,
                destination=request.destination,
                destination_lat=coordinates["lat"] if coordinates else None,
                destination_lng=coordinates["lng"] if coordinates else None,
                note=request.note,
                status=STATUS_PENDING,
                estimated_delivery=request.estimated_delivery,
                marked_by_user_id=actor.id,
                marked_by_name=actor.name.strip(),
                marked_by_email=actor.email.strip().lower(),
                marked_by_role=actor.role,
                marked_date=utcnow(),
            )
            shipment.add_notification(NOTIFICATION_ASSIGNED)
            db.session.add(shipment)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return shipment

    shipment = run_with_retry(_op)
    return shipment, coordinates is not None
