# Overview: Flask API routes for product categories.

from flask import Blueprint, request, g, jsonify, current_app

from ..services import categories_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_roles
from ..permissions import STAFF_ROLES

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories():
    try:
        categories = categories_service.list_categories(request.args.get("search"))
        return jsonify([c.to_dict() for c in categories])
    except Exception:
        current_app.logger.exception("Failed to fetch categories")
        return {"error": "Failed to fetch categories"}, 500


@categories_bp.post("")
@require_auth
@require_roles(*STAFF_ROLES)
def create_category():
    payload = request.get_json(silent=True) or {}
    try:
        category = categories_service.create_category(name=payload.get("name"), actor=g.current_user)
    except (ValidationError, ConflictError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create category")
        return {"error": "Failed to create category"}, 500
    return category.to_dict(), 201
