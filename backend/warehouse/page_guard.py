# Overview: Role-based page guard applied before every non-API request.

"""
Page guard.

Runs before every page request (anything outside /api and /static):
- public pages pass through
- no valid session: redirect to the sign-in page
- a role without access to the path: redirect to that role's landing page

Never renders a 403 page and never writes anything beyond the session's
last-used stamp.
"""

from flask import Flask, request, redirect, g

from .services import session_service
from .decorators import extract_token
from .permissions import (
    Role,
    SIGN_IN_PATH,
    is_public_path,
    can_access_page,
    default_page_for,
)

SKIPPED_PREFIXES = ("/api", "/static")


def guard_page():
    path = request.path
    if path.startswith(SKIPPED_PREFIXES) or is_public_path(path):
        return None

    token = extract_token()
    context = session_service.validate_session(token) if token else None
    if context is None:
        return redirect(SIGN_IN_PATH)

    role = Role.parse(context.role)
    if not can_access_page(role, path):
        return redirect(default_page_for(role))

    g.current_user = context.user
    g.session_context = context
    return None


def init_page_guard(app: Flask) -> None:
    app.before_request(guard_page)
