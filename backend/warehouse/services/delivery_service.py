"""
Delivery Lifecycle Service

STATUS MACHINE:
    pending    -> in-transit | cancelled
    in-transit -> delivered  | cancelled
    delivered, cancelled: terminal

Setting the current status again is a no-op. Entering in-transit stamps
started_at, delivered stamps delivered_at, cancelled stamps cancelled_at;
terminal states also stamp completed_at.

ARCHIVAL:
Entering a terminal state writes the ArchivedDelivery snapshot in the same
transaction. The ToShip row stays visible to the tracking dashboard until
cleanup removes it after the retention window. Archiving is idempotent on
original_id, so cleanup can re-run safely.

Stock reserved at assignment is not restored on cancel.
"""

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import ArchivedDelivery, ToShip, User
from ..models.deliveries import (
    DELIVERY_STATUSES,
    NOTIFICATION_STATUS_UPDATE,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_IN_TRANSIT,
    STATUS_PENDING,
    TERMINAL_STATUSES,
)
from ..permissions import is_staff
from ..validation import NotFoundError, ValidationError
from warehouse.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_PENDING: frozenset({STATUS_IN_TRANSIT, STATUS_CANCELLED}),
    STATUS_IN_TRANSIT: frozenset({STATUS_DELIVERED, STATUS_CANCELLED}),
    STATUS_DELIVERED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}

ACTIVE_STATUSES = (STATUS_PENDING, STATUS_IN_TRANSIT)

MAX_ARCHIVE_PAGE = 100


class InvalidTransitionError(ValueError):
    """Requested status is not reachable from the current one."""


class AccessDeniedError(PermissionError):
    """Caller is neither the assigned driver nor staff."""


def get_delivery(delivery_id: int) -> ToShip:
    shipment = db.session.get(ToShip, delivery_id)
    if not shipment:
        raise NotFoundError("Delivery not found")
    return shipment


def is_assigned_driver(shipment: ToShip, email: str | None) -> bool:
    return bool(email) and shipment.delivery_personnel_email.lower() == email.strip().lower()


def ensure_can_update(shipment: ToShip, actor: User) -> None:
    if is_assigned_driver(shipment, actor.email) or is_staff(actor.role):
        return
    raise AccessDeniedError("You can only update your own deliveries")


def parse_status(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Status is required")
    status = value.strip().lower()
    if status not in DELIVERY_STATUSES:
        raise ValidationError(f"Invalid status: {value}. Must be one of: {', '.join(DELIVERY_STATUSES)}")
    return status


def _apply_transition(shipment: ToShip, new_status: str, actor: User) -> bool:
    """Mutates a locked shipment. Returns False for a same-status no-op."""
    current = shipment.status
    if new_status == current:
        return False

    if new_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(f"Cannot change status from {current} to {new_status}")

    now = utcnow()
    shipment.status = new_status
    if new_status == STATUS_IN_TRANSIT and not shipment.started_at:
        shipment.started_at = now
    elif new_status == STATUS_DELIVERED and not shipment.delivered_at:
        shipment.delivered_at = now
    elif new_status == STATUS_CANCELLED and not shipment.cancelled_at:
        shipment.cancelled_at = now

    shipment.add_notification(NOTIFICATION_STATUS_UPDATE)

    if shipment.is_terminal:
        shipment.completed_at = now
        archive_delivery(shipment, closer=actor)

    return True


def update_status(*, delivery_id: int, new_status: str, actor: User) -> tuple[ToShip, str, bool]:
    """
    Apply a status transition under a row lock.

    Returns (shipment, previous_status, changed).
    Raises NotFoundError, AccessDeniedError, InvalidTransitionError.
    """
    new_status = parse_status(new_status)

    def _op():
        try:
            shipment = lock_for_update(db.session.query(ToShip).filter_by(id=delivery_id)).first()
            if not shipment:
                raise NotFoundError("Delivery not found")
            ensure_can_update(shipment, actor)

            previous = shipment.status
            changed = _apply_transition(shipment, new_status, actor)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return shipment, previous, changed

    return run_with_retry(_op)


def start_delivery(*, delivery_id: int, actor: User) -> tuple[ToShip, bool]:
    """
    Idempotent "driver started" signal: only the first call moves the record to
    in-transit and stamps started_at. Returns (shipment, changed).
    """
    def _op():
        try:
            shipment = lock_for_update(db.session.query(ToShip).filter_by(id=delivery_id)).first()
            if not shipment:
                raise NotFoundError("Delivery assignment not found")
            ensure_can_update(shipment, actor)

            if shipment.started_at:
                db.session.rollback()
                return shipment, False

            changed = _apply_transition(shipment, STATUS_IN_TRANSIT, actor)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return shipment, changed

    return run_with_retry(_op)


# =============================================================================
# ARCHIVAL & CLEANUP
# =============================================================================

def archive_delivery(shipment: ToShip, closer: User | None = None) -> ArchivedDelivery:
    """
    Snapshot a terminal shipment into archived_deliveries. Does not commit.
    Returns the existing snapshot if the shipment was archived already.
    """
    existing = db.session.query(ArchivedDelivery).filter_by(original_id=shipment.id).first()
    if existing:
        if shipment.archived_at is None:
            shipment.archived_at = existing.archived_at or utcnow()
        return existing

    now = utcnow()
    archived = ArchivedDelivery(
        original_id=shipment.id,
        product_id=shipment.product_id,
        product_name=shipment.product_name,
        product_sku=shipment.product_sku,
        product_image=shipment.product_image or "",
        quantity=shipment.quantity,
        delivery_personnel_id=shipment.delivery_personnel_id,
        delivery_personnel_full_name=shipment.delivery_personnel_full_name,
        delivery_personnel_email=shipment.delivery_personnel_email,
        destination=shipment.destination,
        destination_lat=shipment.destination_lat,
        destination_lng=shipment.destination_lng,
        note=shipment.note or "",
        status=shipment.status,
        assigned_date=shipment.created_at or shipment.marked_date,
        started_at=shipment.started_at,
        delivered_at=shipment.delivered_at,
        cancelled_at=shipment.cancelled_at,
        estimated_delivery=shipment.estimated_delivery,
        marked_by_name=shipment.marked_by_name,
        marked_by_email=shipment.marked_by_email,
        marked_by_role=shipment.marked_by_role,
        closed_by_name=closer.name if closer else None,
        closed_by_email=closer.email if closer else None,
        closed_by_role=closer.role if closer else None,
        archived_at=now,
    )
    db.session.add(archived)
    shipment.archived_at = now
    return archived


def cleanup_deliveries(retention_days: int = 7, now=None) -> dict:
    """
    Archive any terminal shipment that was missed, then hard-delete terminal
    shipments completed more than retention_days ago.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=retention_days)

    try:
        unarchived = db.session.query(ToShip).filter(
            ToShip.status.in_(TERMINAL_STATUSES),
            ToShip.archived_at.is_(None),
        ).all()
        for shipment in unarchived:
            if shipment.completed_at is None:
                shipment.completed_at = now
            archive_delivery(shipment)
        db.session.flush()

        expired = db.session.query(ToShip).filter(
            ToShip.status.in_(TERMINAL_STATUSES),
            ToShip.completed_at.isnot(None),
            ToShip.completed_at < cutoff,
        ).all()
        for shipment in expired:
            db.session.delete(shipment)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return {"archivedCount": len(unarchived), "deletedCount": len(expired)}


# =============================================================================
# QUERIES
# =============================================================================

def list_assigned(driver_email: str, statuses: list[str] | None = None) -> list[ToShip]:
    statuses = statuses or list(ACTIVE_STATUSES)
    return (
        db.session.query(ToShip)
        .filter(
            ToShip.delivery_personnel_email == driver_email.strip().lower(),
            ToShip.status.in_(statuses),
        )
        .order_by(ToShip.created_at.desc(), ToShip.id.desc())
        .all()
    )


def list_all() -> list[ToShip]:
    return db.session.query(ToShip).order_by(ToShip.created_at.desc(), ToShip.id.desc()).all()


def _archived_query(driver_email: str | None):
    query = db.session.query(ArchivedDelivery)
    if driver_email:
        query = query.filter(ArchivedDelivery.delivery_personnel_email == driver_email.strip().lower())
    return query


def list_archived(driver_email: str | None, *, limit: int = 20, skip: int = 0) -> dict:
    limit = min(max(limit, 1), MAX_ARCHIVE_PAGE)
    skip = max(skip, 0)

    query = _archived_query(driver_email)
    total = query.count()
    rows = (
        query.order_by(ArchivedDelivery.archived_at.desc(), ArchivedDelivery.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return {
        "deliveries": [r.to_dict() for r in rows],
        "totalCount": total,
        "hasMore": skip + len(rows) < total,
    }


def count_archived(driver_email: str | None) -> int:
    return _archived_query(driver_email).count()
