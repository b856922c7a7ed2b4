# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service
from .permissions import Role


def extract_token() -> str | None:
    """Session token from the auth cookie, falling back to an Authorization: Bearer header."""
    token = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require an authenticated session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if the token is missing, unknown, expired, revoked or the user is banned.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = extract_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Authentication required"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles):
    """
    Require the authenticated user to hold one of the given roles.

    Must be stacked below @require_auth.
    """
    allowed = {r.value if isinstance(r, Role) else r for r in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in allowed:
                current_app.logger.info(
                    "Role check failed for user %s (%s) on %s",
                    g.current_user.id, g.current_user.role, request.path,
                )
                return jsonify({"error": "Insufficient permissions"}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
