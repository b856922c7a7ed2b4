# Overview: Flask API routes for drivers and their push tokens.

from flask import Blueprint, request, g, jsonify, current_app

from ..services import driver_service
from ..services.delivery_service import AccessDeniedError
from ..validation import ValidationError, NotFoundError, parse_identifier
from ..decorators import require_auth, require_roles
from ..permissions import STAFF_ROLES

drivers_bp = Blueprint("drivers", __name__, url_prefix="/api/drivers")


@drivers_bp.get("")
@require_auth
@require_roles(*STAFF_ROLES)
def list_drivers():
    try:
        return jsonify(driver_service.list_drivers())
    except Exception:
        current_app.logger.exception("Failed to fetch drivers")
        return {"error": "Failed to fetch drivers"}, 500


@drivers_bp.get("/<user_id>")
@require_auth
def get_driver(user_id: str):
    try:
        driver = driver_service.get_driver(parse_identifier(user_id, "user"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to fetch driver")
        return {"error": "Failed to fetch driver"}, 500
    return jsonify(driver.to_dict() if driver else None)


@drivers_bp.put("/<user_id>")
@require_auth
def update_driver(user_id: str):
    """Body: {fcmToken}. Upserts the driver record."""
    payload = request.get_json(silent=True) or {}
    try:
        driver = driver_service.upsert_token(
            user_id=parse_identifier(user_id, "user"),
            fcm_token=payload.get("fcmToken"),
            actor=g.current_user,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update driver")
        return {"error": "Failed to update driver"}, 500
    return driver.to_dict()
