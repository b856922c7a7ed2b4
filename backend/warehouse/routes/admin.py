# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/warehouse/routes/admin.py
"""
Admin routes for user management.

Provides endpoints for:
- Listing and creating users
- Changing a user's role
- Banning and unbanning (banning revokes every session)

All endpoints require an admin session.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service, session_service
from ..services.auth_service import PasswordValidationError
from ..decorators import require_auth, require_roles
from ..permissions import Role, ROLE_DESCRIPTIONS
from ..validation import ConflictError, NotFoundError, ValidationError

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/roles")
@require_auth
@require_roles(Role.ADMIN)
def list_roles():
    return jsonify({
        "roles": [{"name": r.value, "description": ROLE_DESCRIPTIONS[r]} for r in Role]
    })


@admin_bp.get("/users")
@require_auth
@require_roles(Role.ADMIN)
def list_users():
    """
    Query params:
    - role: filter by role
    - search: name or email substring
    """
    try:
        users = auth_service.list_users(role=request.args.get("role"), search=request.args.get("search"))
        return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users")
@require_auth
@require_roles(Role.ADMIN)
def create_user():
    """
    Request body:
    - name, email, password (required)
    - role (optional, default "user")
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            data.get("name"),
            data.get("email"),
            data.get("password") or "",
            role=data.get("role") or Role.USER.value,
            email_verified=bool(data.get("emailVerified", False)),
        )
        current_app.logger.info("User %s created by admin %s", user.email, g.current_user.email)
        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201

    except (PasswordValidationError, ValidationError, ConflictError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>/role")
@require_auth
@require_roles(Role.ADMIN)
def set_user_role(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.set_role(user_id, data.get("role"))
        # Force re-authentication so page access follows the new role
        session_service.revoke_all_user_sessions(user.id, reason="Role changed")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to change user role")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"user": user.to_dict()})


@admin_bp.post("/users/<int:user_id>/ban")
@require_auth
@require_roles(Role.ADMIN)
def ban_user(user_id: int):
    if user_id == g.current_user.id:
        return jsonify({"error": "You cannot ban yourself"}), 400

    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.set_banned(user_id, True, data.get("reason"))
        revoked = session_service.revoke_all_user_sessions(user.id, reason="User banned")
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to ban user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict(), "revokedSessions": revoked})


@admin_bp.post("/users/<int:user_id>/unban")
@require_auth
@require_roles(Role.ADMIN)
def unban_user(user_id: int):
    try:
        user = auth_service.set_banned(user_id, False)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to unban user")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"user": user.to_dict()})
