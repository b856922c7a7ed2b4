from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


STATUS_PENDING = "pending"
STATUS_IN_TRANSIT = "in-transit"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
DELIVERY_STATUSES = (STATUS_PENDING, STATUS_IN_TRANSIT, STATUS_DELIVERED, STATUS_CANCELLED)
TERMINAL_STATUSES = frozenset({STATUS_DELIVERED, STATUS_CANCELLED})

NOTIFICATION_ASSIGNED = "assigned"
NOTIFICATION_STATUS_UPDATE = "status_update"
NOTIFICATION_NOTE_ADDED = "note_added"
NOTIFICATION_SENT = "notification_sent"


def _coordinates(lat, lng) -> dict | None:
    if lat is None or lng is None:
        return None
    return {"lat": lat, "lng": lng}


class ToShip(db.Model):
    """
    Active delivery assignment.

    The reserved quantity has already been taken out of Product.stock when the
    row exists. Lifecycle: pending -> in-transit -> delivered | cancelled
    (pending may also be cancelled directly). Terminal rows are archived at
    the transition and hard-deleted by cleanup after the retention window.
    """
    __tablename__ = "to_ship"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_to_ship_quantity"),
        db.Index("ix_to_ship_driver_status", "delivery_personnel_email", "status"),
        db.Index("ix_to_ship_completed_at", "completed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Non-owning reference plus a snapshot for display after product edits
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)
    product_image = db.Column(db.String(512), nullable=False, default="")

    quantity = db.Column(db.Integer, nullable=False)

    delivery_personnel_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    delivery_personnel_full_name = db.Column(db.String(255), nullable=False)
    delivery_personnel_email = db.Column(db.String(255), nullable=False)
    delivery_personnel_fcm_token = db.Column(db.String(512), nullable=True)

    destination = db.Column(db.String(512), nullable=False)
    destination_lat = db.Column(db.Float, nullable=True)
    destination_lng = db.Column(db.Float, nullable=True)
    note = db.Column(db.Text, nullable=False, default="")

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    estimated_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    marked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    marked_by_name = db.Column(db.String(255), nullable=False)
    marked_by_email = db.Column(db.String(255), nullable=False)
    marked_by_role = db.Column(db.String(16), nullable=False)
    marked_date = db.Column(db.DateTime(timezone=True), nullable=False)

    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    notifications = db.relationship(
        "ShipmentNotification",
        backref="shipment",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ShipmentNotification.id",
    )

    def __repr__(self) -> str:
        return f"<ToShip id={self.id} product_id={self.product_id} status={self.status!r}>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def add_notification(self, kind: str) -> None:
        self.notifications.append(ShipmentNotification(type=kind, read=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "product": {
                "name": self.product_name,
                "image": self.product_image,
                "quantity": self.quantity,
                "sku": self.product_sku,
            },
            "customerAddress": {
                "destination": self.destination,
                "coordinates": _coordinates(self.destination_lat, self.destination_lng),
            },
            "driver": {
                "id": self.delivery_personnel_id,
                "fullName": self.delivery_personnel_full_name,
                "email": self.delivery_personnel_email,
            },
            "status": self.status,
            "note": self.note or None,
            "assignedDate": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "startedAt": to_utc_z(self.started_at),
            "deliveredAt": to_utc_z(self.delivered_at),
            "cancelledAt": to_utc_z(self.cancelled_at),
            "completedAt": to_utc_z(self.completed_at),
            "archivedAt": to_utc_z(self.archived_at),
            "estimatedDelivery": to_utc_z(self.estimated_delivery),
            "markedBy": {
                "name": self.marked_by_name,
                "email": self.marked_by_email,
                "role": self.marked_by_role,
            },
            "markedDate": to_utc_z(self.marked_date),
            "notifications": [n.to_dict() for n in self.notifications],
        }


class ShipmentNotification(db.Model):
    """Per-shipment notification trail (assigned, status_update, note_added, notification_sent)."""
    __tablename__ = "shipment_notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    to_ship_id = db.Column(db.Integer, db.ForeignKey("to_ship.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "read": self.read,
            "createdAt": to_utc_z(self.created_at),
        }


class ArchivedDelivery(db.Model):
    """
    Immutable snapshot of a completed ToShip.

    original_id is unique so archiving the same shipment twice is a no-op.
    closed_by_* records who moved the shipment into its terminal state.
    """
    __tablename__ = "archived_deliveries"
    __table_args__ = (
        db.Index("ix_archived_deliveries_driver_archived", "delivery_personnel_email", "archived_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    original_id = db.Column(db.Integer, nullable=False, unique=True)

    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)
    product_image = db.Column(db.String(512), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)

    delivery_personnel_id = db.Column(db.Integer, nullable=False)
    delivery_personnel_full_name = db.Column(db.String(255), nullable=False)
    delivery_personnel_email = db.Column(db.String(255), nullable=False)

    destination = db.Column(db.String(512), nullable=False)
    destination_lat = db.Column(db.Float, nullable=True)
    destination_lng = db.Column(db.Float, nullable=True)
    note = db.Column(db.Text, nullable=False, default="")

    status = db.Column(db.String(16), nullable=False)
    assigned_date = db.Column(db.DateTime(timezone=True), nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    estimated_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    marked_by_name = db.Column(db.String(255), nullable=False)
    marked_by_email = db.Column(db.String(255), nullable=False)
    marked_by_role = db.Column(db.String(16), nullable=False)

    closed_by_name = db.Column(db.String(255), nullable=True)
    closed_by_email = db.Column(db.String(255), nullable=True)
    closed_by_role = db.Column(db.String(16), nullable=True)

    archived_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "originalId": self.original_id,
            "product": {
                "name": self.product_name,
                "image": self.product_image,
                "quantity": self.quantity,
                "sku": self.product_sku,
            },
            "customerAddress": {
                "destination": self.destination,
                "coordinates": _coordinates(self.destination_lat, self.destination_lng),
            },
            "driver": {
                "id": self.delivery_personnel_id,
                "fullName": self.delivery_personnel_full_name,
                "email": self.delivery_personnel_email,
            },
            "status": self.status,
            "note": self.note or None,
            "assignedDate": to_utc_z(self.assigned_date),
            "startedAt": to_utc_z(self.started_at),
            "deliveredAt": to_utc_z(self.delivered_at),
            "cancelledAt": to_utc_z(self.cancelled_at),
            "estimatedDelivery": to_utc_z(self.estimated_delivery),
            "archivedAt": to_utc_z(self.archived_at),
            "markedBy": {"name": self.marked_by_name, "email": self.marked_by_email},
            "closedBy": (
                {"name": self.closed_by_name, "email": self.closed_by_email, "role": self.closed_by_role}
                if self.closed_by_email else None
            ),
        }


class Driver(db.Model):
    """Push token registry, one row per delivery-role user."""
    __tablename__ = "drivers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    fcm_token = db.Column(db.String(512), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "fcmToken": self.fcm_token or "",
            "updatedAt": to_utc_z(self.updated_at),
        }
