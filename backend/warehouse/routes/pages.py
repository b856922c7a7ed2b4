# Overview: Minimal server-rendered pages behind the page guard.

from flask import Blueprint, render_template, g

from ..permissions import PUBLIC_PATHS

pages_bp = Blueprint("pages", __name__)

PAGE_TITLES = {
    "/dashboard": "Dashboard",
    "/deliveries": "Deliveries",
    "/deliveries/overview": "Delivery Overview",
    "/deliveries/assignments": "Delivery Assignments",
    "/manage-product": "Manage Products",
    "/history": "Sales History",
    "/manage-users": "Manage Users",
    "/settings": "Settings",
    "/sign-in": "Sign In",
}


@pages_bp.get("/<path:page>")
def page(page: str):
    """The guard has already redirected anyone who may not see this path."""
    path = f"/{page}".rstrip("/")
    if path not in PAGE_TITLES and path not in PUBLIC_PATHS:
        return {"error": "Page not found"}, 404
    return render_template(
        "page.html",
        title=PAGE_TITLES.get(path, "LGW Warehouse"),
        path=path,
        user=getattr(g, "current_user", None),
    )
