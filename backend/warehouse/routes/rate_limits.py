# Overview: Public rate limit endpoints (check, increment, clear).

from flask import Blueprint, request, current_app

from ..services import rate_limit_service
from ..validation import ValidationError

rate_limits_bp = Blueprint("rate_limits", __name__, url_prefix="/api")


@rate_limits_bp.post("/check-rate-limit")
def check_rate_limit():
    """Body: {key, window (seconds), max}. 429 with retryAfter when exhausted."""
    payload = request.get_json(silent=True) or {}
    try:
        window, max_requests = rate_limit_service.parse_limits(payload.get("window"), payload.get("max"))
        decision = rate_limit_service.check(payload.get("key"), window, max_requests)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Rate limit check failed")
        return {"error": "Internal server error"}, 500

    return decision.to_dict(), 200 if decision.allowed else 429


@rate_limits_bp.post("/increment-rate-limit")
def increment_rate_limit():
    payload = request.get_json(silent=True) or {}
    try:
        count = rate_limit_service.increment(payload.get("key"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Rate limit increment failed")
        return {"error": "Internal server error"}, 500
    return {"success": True, "count": count}


@rate_limits_bp.post("/clear-rate-limit")
def clear_rate_limit():
    payload = request.get_json(silent=True) or {}
    try:
        rate_limit_service.clear(payload.get("key"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Rate limit clear failed")
        return {"error": "Internal server error"}, 500
    return {"success": True}
