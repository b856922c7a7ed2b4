# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/warehouse/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Reads: any signed-in user
- Writes, direct sales and shipment assignment: admin or cashier
"""
from flask import Blueprint, request, g, jsonify, current_app

from ..services import products_service, sales_service, shipment_service, notification_service
from ..services.sales_service import InsufficientStockError
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    parse_identifier,
)
from ..decorators import require_auth, require_roles
from ..permissions import STAFF_ROLES

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - search: substring of name, SKU or description
    - category: exact category, "all" for any
    - status: active | inactive | out-of-stock, "all" for any
    """
    try:
        products = products_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            status=request.args.get("status"),
        )
        return jsonify([p.to_dict() for p in products])
    except Exception:
        current_app.logger.exception("Failed to fetch products")
        return {"error": "Failed to fetch products"}, 500


@products_bp.post("")
@require_auth
@require_roles(*STAFF_ROLES)
def create_product_route():
    payload = request.get_json(silent=True)
    try:
        patch = products_service.validate_product_payload(payload, partial=False)
        created = products_service.create_product(patch=patch, actor=g.current_user)
    except (ValidationError, ConflictError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Failed to create product"}, 500

    return created.to_dict(), 201


@products_bp.get("/<product_id>")
@require_auth
def get_product_route(product_id: str):
    try:
        product = products_service.get_product(parse_identifier(product_id, "product"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to fetch product")
        return {"error": "Failed to fetch product"}, 500
    return product.to_dict()


@products_bp.put("/<product_id>")
@require_auth
@require_roles(*STAFF_ROLES)
def update_product_route(product_id: str):
    payload = request.get_json(silent=True)
    try:
        pid = parse_identifier(product_id, "product")
        patch = products_service.validate_product_payload(payload, partial=True)
        updated = products_service.update_product(product_id=pid, patch=patch, actor=g.current_user)
    except (ValidationError, ConflictError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Failed to update product"}, 500

    return updated.to_dict()


@products_bp.delete("/<product_id>")
@require_auth
@require_roles(*STAFF_ROLES)
def delete_product_route(product_id: str):
    try:
        deleted = products_service.delete_product(product_id=parse_identifier(product_id, "product"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Failed to delete product"}, 500

    return {"message": "Product deleted successfully", "id": deleted.id}, 200


@products_bp.post("/<product_id>/sold")
@require_auth
@require_roles(*STAFF_ROLES)
def mark_sold_route(product_id: str):
    """
    Direct sale: {quantityToDeduct, notes?}.
    Stock decrement and the history row commit together or not at all.
    """
    payload = request.get_json(silent=True) or {}
    try:
        product, history = sales_service.record_sale(
            product_id=parse_identifier(product_id, "product"),
            quantity=payload.get("quantityToDeduct"),
            actor=g.current_user,
            notes=payload.get("notes"),
        )
    except (ValidationError, InsufficientStockError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to deduct product")
        return {"error": "Failed to deduct product"}, 500

    return {
        "success": True,
        "message": f"Successfully deducted {history.quantity_sold} units from {product.name}",
        "product": product.to_dict(),
        "history": history.to_dict(),
        "deductedQuantity": history.quantity_sold,
    }


def assign_shipment_response(product_id: int, payload: dict):
    """Shared by /api/products/<id>/to-ship and /api/toship."""
    try:
        shipment_request = shipment_service.parse_shipment_request(payload)
        shipment, geocoded = shipment_service.assign_shipment(
            product_id=product_id,
            request=shipment_request,
            actor=g.current_user,
        )
        updated_stock = products_service.get_product(product_id).stock
    except (ValidationError, InsufficientStockError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to mark product for shipment")
        return {"error": "Internal server error"}, 500

    coordinates = (
        {"lat": shipment.destination_lat, "lng": shipment.destination_lng} if geocoded else None
    )
    notification_service.notify_assignment(shipment, geocoded=coordinates)

    return {
        "message": "Product marked for shipment successfully",
        "toShipItem": shipment.to_dict(),
        "updatedStock": updated_stock,
        "geocodingSuccess": geocoded,
    }, 201


@products_bp.post("/<product_id>/to-ship")
@require_auth
@require_roles(*STAFF_ROLES)
def to_ship_route(product_id: str):
    try:
        pid = parse_identifier(product_id, "product")
    except ValidationError as e:
        return {"error": str(e)}, 400
    return assign_shipment_response(pid, request.get_json(silent=True) or {})
