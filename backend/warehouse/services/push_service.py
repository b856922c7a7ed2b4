"""
Mobile Push Service (Firebase Cloud Messaging)

The Firebase app is initialised lazily on first send from FIREBASE_* config.
When credentials are not configured the send is logged and skipped (returns
None). Errors from Firebase propagate; callers in notification_service wrap
them so a failed push never fails the request.
"""

from __future__ import annotations

import threading

import firebase_admin
from firebase_admin import credentials, messaging
from flask import current_app


FIREBASE_APP_NAME = "warehouse"


class FirebasePushSender:
    def __init__(self, app=None):
        self._lock = threading.Lock()
        self._firebase_app = None
        self._config = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self._config = {
            "project_id": app.config.get("FIREBASE_PROJECT_ID"),
            "client_email": app.config.get("FIREBASE_CLIENT_EMAIL"),
            "private_key": app.config.get("FIREBASE_PRIVATE_KEY"),
        }
        app.extensions["push_sender"] = self

    @property
    def configured(self) -> bool:
        return bool(self._config.get("project_id"))

    def _get_app(self):
        if self._firebase_app is not None:
            return self._firebase_app

        with self._lock:
            if self._firebase_app is not None:
                return self._firebase_app

            if not self._config.get("private_key"):
                raise RuntimeError("FIREBASE_PRIVATE_KEY is required")
            if not self._config.get("client_email"):
                raise RuntimeError("FIREBASE_CLIENT_EMAIL is required")

            try:
                self._firebase_app = firebase_admin.get_app(FIREBASE_APP_NAME)
            except ValueError:
                cred = credentials.Certificate({
                    "type": "service_account",
                    "project_id": self._config["project_id"],
                    "private_key": self._config["private_key"].replace("\\n", "\n"),
                    "client_email": self._config["client_email"],
                    "token_uri": "https://oauth2.googleapis.com/token",
                })
                self._firebase_app = firebase_admin.initialize_app(
                    cred,
                    {"projectId": self._config["project_id"]},
                    name=FIREBASE_APP_NAME,
                )
                current_app.logger.info("Firebase Admin initialized")
            return self._firebase_app

    def send(self, token: str, title: str, body: str, data: dict[str, str]) -> str | None:
        """Send one message. Returns the FCM message id, or None when skipped."""
        if not self.configured:
            current_app.logger.warning("Firebase credentials not configured; skipping push")
            return None
        if not token:
            current_app.logger.warning("No FCM token provided; skipping push")
            return None

        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data=data,
            token=token,
        )
        message_id = messaging.send(message, app=self._get_app())
        current_app.logger.info("Push sent: %s", message_id)
        return message_id


def get_push_sender():
    return current_app.extensions["push_sender"]


def send_shipment_notification(token: str, details: dict) -> str | None:
    """
    Notify a driver of a new assignment.

    details: productName, quantity, destination, estimatedDelivery (ISO string or None)
    """
    quantity = details.get("quantity")
    product_name = details.get("productName") or ""
    destination = details.get("destination") or ""

    return get_push_sender().send(
        token,
        title="New Shipment Assigned",
        body=f"You've been assigned to deliver {quantity} units of {product_name} to {destination}",
        data={
            "type": "shipment_assigned",
            "productName": str(product_name),
            "quantity": str(quantity),
            "destination": str(destination),
            "estimatedDelivery": details.get("estimatedDelivery") or "",
        },
    )
