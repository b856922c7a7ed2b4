# Overview: Server-sent events endpoint for live delivery notifications.

from flask import Blueprint, Response, request, g, current_app

from ..events import get_event_hub
from ..decorators import require_auth

events_bp = Blueprint("events", __name__, url_prefix="/api")


@events_bp.get("/sse")
@require_auth
def sse_stream():
    """
    Query params: userId, userEmail (both required).
    The signed-in user must own userEmail.
    """
    user_id = request.args.get("userId")
    user_email = request.args.get("userEmail")

    if not user_id or not user_email:
        return {"error": "User ID and email are required"}, 400

    if user_email.strip().lower() != g.current_user.email.lower():
        return {"error": "You can only subscribe to your own events"}, 403

    hub = get_event_hub()
    try:
        conn = hub.register(user_id, user_email)
    except RuntimeError:
        return {"error": "Event stream unavailable"}, 503
    except Exception:
        current_app.logger.exception("Failed to open event stream")
        return {"error": "Internal server error"}, 500

    return Response(
        hub.stream(conn),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
