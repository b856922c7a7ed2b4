# Overview: Flask API route for the staff dashboard analytics snapshot.

"""
Analytics Routes

GET /api/analytics?period=<days>: inventory overview, sales, top products,
category split, daily trend, delivery counts, recent sales and stock alerts.
"""

from flask import Blueprint, request, current_app

from ..services import analytics_service
from ..validation import ValidationError
from ..decorators import require_auth, require_roles
from ..permissions import STAFF_ROLES

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("")
@require_auth
@require_roles(*STAFF_ROLES)
def dashboard_route():
    try:
        period = analytics_service.parse_period(request.args.get("period"))
        return analytics_service.dashboard(period)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to fetch analytics")
        return {"error": "Failed to fetch analytics"}, 500
