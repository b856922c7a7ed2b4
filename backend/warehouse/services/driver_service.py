"""Driver push-token registry."""
from __future__ import annotations

from ..extensions import db
from ..models import Driver, User
from ..permissions import Role, is_staff
from .delivery_service import AccessDeniedError
from ..validation import NotFoundError, ValidationError


def list_drivers() -> list[dict]:
    """Delivery-role users with their FCM token ('' when none)."""
    rows = (
        db.session.query(User, Driver)
        .outerjoin(Driver, Driver.user_id == User.id)
        .filter(User.role == Role.DELIVERY.value, User.banned.is_(False))
        .order_by(User.name.asc())
        .all()
    )
    return [
        {
            "id": user.id,
            "name": user.name,
            "fullName": user.name,
            "email": user.email,
            "fcmToken": driver.fcm_token if driver and driver.fcm_token else "",
        }
        for user, driver in rows
    ]


def get_driver(user_id: int) -> Driver | None:
    return db.session.query(Driver).filter_by(user_id=user_id).first()


def upsert_token(*, user_id: int, fcm_token, actor: User) -> Driver:
    """
    Create or update a driver's FCM token.

    Non-staff callers may only update their own record.
    """
    if not is_staff(actor.role) and actor.id != user_id:
        raise AccessDeniedError("You can only update your own driver record")

    if fcm_token is not None and not isinstance(fcm_token, str):
        raise ValidationError("fcmToken must be a string")

    if not db.session.get(User, user_id):
        raise NotFoundError("User not found")

    token = (fcm_token or "").strip() or None
    driver = get_driver(user_id)
    if driver is None:
        driver = Driver(user_id=user_id, fcm_token=token)
        db.session.add(driver)
    else:
        driver.fcm_token = token

    db.session.commit()
    return driver
