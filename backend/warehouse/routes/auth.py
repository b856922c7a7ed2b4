# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/warehouse/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Login throttling per email through the shared rate limiter
- Banned accounts are rejected even with correct credentials
- Session token returned in an HttpOnly cookie (and in the body for API clients)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import rate_limit_service
from ..services.auth_service import AccountBannedError
from ..decorators import require_auth, extract_token
from ..validation import ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _set_session_cookie(response, token: str):
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        token,
        max_age=int(session_service.SESSION_ABSOLUTE_TIMEOUT.total_seconds()),
        httponly=True,
        secure=current_app.config.get("AUTH_COOKIE_SECURE", False),
        samesite="Lax",
    )
    return response


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    - 400: email/password missing
    - 401: invalid credentials
    - 403: account banned
    - 429: too many attempts for this email (retryAfter seconds)
    """
    try:
        data = request.get_json(silent=True) or {}
        email = auth_service.normalize_email(data.get("email"))
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "Email and password are required"}), 400

        key = rate_limit_service.login_key(email)
        decision = rate_limit_service.consume(
            key,
            rate_limit_service.LOGIN_WINDOW_SECONDS,
            rate_limit_service.LOGIN_MAX_ATTEMPTS,
        )
        if not decision.allowed:
            return jsonify({
                "error": "Too many login attempts. Please try again later.",
                "retryAfter": decision.retry_after,
            }), 429

        try:
            user = auth_service.authenticate(email, password)
        except AccountBannedError as e:
            return jsonify({"error": "Account is banned", "reason": e.reason}), 403

        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        rate_limit_service.clear(key)

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        response = jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        })
        return _set_session_cookie(response, token), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session and clear the cookie."""
    try:
        session_service.revoke_session(extract_token(), reason="User logout")
        response = jsonify({"message": "Logout successful"})
        response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"])
        return response, 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/session")
@require_auth
def session_route():
    ctx = g.session_context
    return jsonify({"user": ctx.user.to_dict(), "session": ctx.session.to_dict()}), 200


@auth_bp.post("/verify-email")
def verify_email_route():
    """Public: does this email belong to a user? (case-insensitive)"""
    data = request.get_json(silent=True) or {}
    try:
        exists = auth_service.email_exists(data.get("email"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to verify email")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"exists": exists}), 200
