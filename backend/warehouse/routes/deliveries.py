# Overview: Flask API routes for the delivery lifecycle; status updates, queries, archive and cleanup.

"""
Delivery routes.

- PATCH /api/deliveries/<id>: status transition by the assigned driver or staff
- GET /api/deliveries/assigned: a driver's active work
- GET /api/deliveries/track-deliveries: staff tracking dashboard
- GET /api/deliveries/archived/list and /archived/count
- POST /api/deliveries/auto-cleanup: archive stragglers, purge after retention
"""

from flask import Blueprint, request, g, jsonify, current_app

from ..services import delivery_service, notification_service
from ..services.delivery_service import AccessDeniedError, InvalidTransitionError
from ..models.deliveries import DELIVERY_STATUSES
from ..validation import ValidationError, NotFoundError, parse_identifier
from ..decorators import require_auth, require_roles
from ..permissions import STAFF_ROLES, is_staff

deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


def _driver_scope(requested: str | None) -> str | None:
    """
    Staff may query any driver (or all); everyone else only their own email.
    Raises AccessDeniedError on a foreign email.
    """
    user = g.current_user
    if is_staff(user.role):
        return requested.strip().lower() if requested else None
    if requested and requested.strip().lower() != user.email.lower():
        raise AccessDeniedError("You can only view your own deliveries")
    return user.email.lower()


@deliveries_bp.patch("/<delivery_id>")
@require_auth
def update_delivery_status(delivery_id: str):
    """Body: {status, driverEmail?}. driverEmail, when sent, must be the assigned driver."""
    payload = request.get_json(silent=True) or {}
    try:
        did = parse_identifier(delivery_id, "delivery")
        status = payload.get("status")
        if not status:
            raise ValidationError("Status is required")

        driver_email = payload.get("driverEmail")
        if driver_email:
            shipment = delivery_service.get_delivery(did)
            if not delivery_service.is_assigned_driver(shipment, driver_email):
                raise AccessDeniedError("You can only update your own deliveries")

        shipment, previous, changed = delivery_service.update_status(
            delivery_id=did, new_status=status, actor=g.current_user,
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

    return {
        "message": "Delivery status updated successfully" if changed else "Status unchanged",
        "delivery": shipment.to_dict(),
    }


@deliveries_bp.get("/assigned")
@require_auth
def assigned_deliveries():
    """
    Query params:
    - driverEmail: defaults to the caller
    - status: comma-separated statuses, default pending,in-transit
    """
    try:
        email = _driver_scope(request.args.get("driverEmail")) or g.current_user.email
        statuses = None
        raw_status = request.args.get("status")
        if raw_status:
            statuses = [s.strip().lower() for s in raw_status.split(",") if s.strip()]
            invalid = [s for s in statuses if s not in DELIVERY_STATUSES]
            if invalid:
                raise ValidationError(f"Invalid status: {', '.join(invalid)}")
        shipments = delivery_service.list_assigned(email, statuses)
        return jsonify([s.to_dict() for s in shipments])
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to fetch assigned deliveries")
        return {"error": "Failed to fetch assigned deliveries"}, 500


@deliveries_bp.get("/track-deliveries")
@require_auth
@require_roles(*STAFF_ROLES)
def track_deliveries():
    delivery_id = request.args.get("deliveryId")
    try:
        if delivery_id:
            shipment = delivery_service.get_delivery(parse_identifier(delivery_id, "delivery"))
            return shipment.to_dict()
        return jsonify([s.to_dict() for s in delivery_service.list_all()])
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to fetch deliveries")
        return {"error": "Failed to fetch deliveries"}, 500


@deliveries_bp.get("/archived/list")
@require_auth
def archived_list():
    """Query params: driverEmail, limit (default 20), skip (default 0)"""
    try:
        email = _driver_scope(request.args.get("driverEmail"))
        return delivery_service.list_archived(
            email,
            limit=request.args.get("limit", 20, type=int),
            skip=request.args.get("skip", 0, type=int),
        )
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except Exception:
        current_app.logger.exception("Failed to fetch archived deliveries")
        return {"error": "Failed to fetch archived deliveries"}, 500


@deliveries_bp.get("/archived/count")
@require_auth
def archived_count():
    try:
        email = _driver_scope(request.args.get("driverEmail"))
        return {"count": delivery_service.count_archived(email)}
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except Exception:
        current_app.logger.exception("Failed to count archived deliveries")
        return {"error": "Failed to count archived deliveries"}, 500


@deliveries_bp.post("/auto-cleanup")
@require_auth
@require_roles(*STAFF_ROLES)
def auto_cleanup():
    try:
        result = delivery_service.cleanup_deliveries(current_app.config["DELIVERY_RETENTION_DAYS"])
    except Exception:
        current_app.logger.exception("Delivery cleanup failed")
        return {"error": "Cleanup failed"}, 500

    current_app.logger.info(
        "Delivery cleanup: archived %s, deleted %s", result["archivedCount"], result["deletedCount"]
    )
    return {"success": True, **result}
