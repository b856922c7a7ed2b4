# Overview: Flask API routes for the barangay location list and address coordinates.

from flask import Blueprint, request, current_app

from ..services import location_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth

locations_bp = Blueprint("locations", __name__, url_prefix="/api/locations")


@locations_bp.get("/batangas")
@require_auth
def batangas_locations():
    """Query params: search (barangay/city/full address substring), city (exact)"""
    try:
        locations = location_service.search_locations(
            search=request.args.get("search"),
            city=request.args.get("city"),
        )
        cities = location_service.list_cities()
    except Exception:
        current_app.logger.exception("Failed to load locations")
        return {"success": False, "error": "Failed to load locations"}, 500

    return {
        "success": True,
        "count": len(locations),
        "cities": cities,
        "locations": locations,
    }


@locations_bp.post("/coordinates")
@require_auth
def coordinates():
    payload = request.get_json(silent=True) or {}
    try:
        result = location_service.resolve_coordinates(payload.get("address"))
    except ValidationError as e:
        return {"success": False, "error": str(e), "coordinates": None}, 400
    except NotFoundError as e:
        return {"success": False, "error": str(e), "coordinates": None}, 404
    except Exception:
        current_app.logger.exception("Failed to resolve coordinates")
        return {"success": False, "error": "Internal server error", "coordinates": None}, 500

    return {"success": True, **result}
