# Overview: Flask API routes for the product sales history.

from flask import Blueprint, request, current_app

from ..services import history_service
from ..validation import ValidationError, NotFoundError, parse_identifier
from ..decorators import require_auth, require_roles
from ..permissions import Role, STAFF_ROLES

product_history_bp = Blueprint("product_history", __name__, url_prefix="/api/product-history")


@product_history_bp.get("")
@require_auth
@require_roles(*STAFF_ROLES)
def list_history():
    """
    Query params: page, limit, search, startDate, endDate, productId, category, status
    """
    args = request.args
    try:
        product_id = args.get("productId")
        result = history_service.list_history(
            page=args.get("page", 1, type=int),
            limit=args.get("limit", 20, type=int),
            search=args.get("search"),
            start_date=args.get("startDate"),
            end_date=args.get("endDate"),
            product_id=parse_identifier(product_id, "product") if product_id else None,
            category=args.get("category"),
            status=args.get("status"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to fetch product history")
        return {"error": "Failed to fetch product history"}, 500
    return result


@product_history_bp.get("/stats")
@require_auth
@require_roles(*STAFF_ROLES)
def history_stats():
    try:
        return history_service.sales_stats()
    except Exception:
        current_app.logger.exception("Failed to compute sales statistics")
        return {"error": "Failed to process request"}, 500


@product_history_bp.delete("/<entry_id>")
@require_auth
@require_roles(Role.ADMIN)
def delete_history_entry(entry_id: str):
    try:
        history_service.delete_history_entry(parse_identifier(entry_id, "history"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete history entry")
        return {"error": "Failed to delete history entry"}, 500
    return {"success": True, "message": "History entry deleted"}
