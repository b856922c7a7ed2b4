# Overview: Flask API route for assigning shipments with the product id in the body.

from flask import Blueprint, request

from ..decorators import require_auth, require_roles
from ..permissions import STAFF_ROLES
from ..validation import ValidationError, parse_identifier
from .products import assign_shipment_response

shipments_bp = Blueprint("shipments", __name__, url_prefix="/api/toship")


@shipments_bp.post("")
@require_auth
@require_roles(*STAFF_ROLES)
def create_shipment():
    payload = request.get_json(silent=True) or {}
    try:
        product_id = parse_identifier(payload.get("productId"), "product")
    except ValidationError as e:
        return {"error": str(e)}, 400
    return assign_shipment_response(product_id, payload)
