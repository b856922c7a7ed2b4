"""
Role and page-access definitions.

WHY: Centralized role definitions keep the page guard and the API decorators
consistent. Roles form a closed set; page access is a static allow-list of
path prefixes per role.

DESIGN PRINCIPLES:
- Public pages need no session
- A role with no matching prefix is sent to its default landing page
- API routes are gated separately with @require_roles
"""
from __future__ import annotations

from enum import Enum


# =============================================================================
# ROLES
# =============================================================================

class Role(str, Enum):
    ADMIN = "admin"
    CASHIER = "cashier"
    DELIVERY = "delivery"
    USER = "user"

    @classmethod
    def parse(cls, value: str | None) -> "Role | None":
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


ROLE_DESCRIPTIONS: dict[Role, str] = {
    Role.ADMIN: "Full system access",
    Role.CASHIER: "Point of sale access",
    Role.DELIVERY: "Delivery management",
    Role.USER: "Basic user access",
}

# Roles allowed to manage catalog data and assign shipments
STAFF_ROLES: tuple[Role, ...] = (Role.ADMIN, Role.CASHIER)


# =============================================================================
# PAGE ACCESS
# =============================================================================

PUBLIC_PATHS: tuple[str, ...] = (
    "/sign-in",
    "/sign-up",
    "/reset-password",
    "/forgot-password",
    "/privacy-policy",
    "/email-verification",
    "/2fa-verification",
)

SIGN_IN_PATH = "/sign-in"

ROLE_PAGE_ACCESS: dict[Role, frozenset[str]] = {
    Role.ADMIN: frozenset({
        "/dashboard",
        "/deliveries",
        "/deliveries/overview",
        "/deliveries/assignments",
        "/manage-product",
        "/history",
        "/manage-users",
        "/settings",
    }),
    Role.CASHIER: frozenset({
        "/dashboard",
        "/deliveries",
        "/deliveries/overview",
        "/deliveries/assignments",
        "/manage-product",
        "/settings",
    }),
    Role.DELIVERY: frozenset({
        "/deliveries",
        "/deliveries/overview",
        "/deliveries/assignments",
        "/settings",
    }),
    Role.USER: frozenset({"/settings"}),
}

ROLE_DEFAULT_PAGE: dict[Role, str] = {
    Role.ADMIN: "/dashboard",
    Role.CASHIER: "/dashboard",
    Role.DELIVERY: "/deliveries/overview",
    Role.USER: "/settings",
}

FALLBACK_PAGE = "/settings"


def is_public_path(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in PUBLIC_PATHS)


def can_access_page(role: Role | None, path: str) -> bool:
    if role is None:
        return False
    return any(path.startswith(prefix) for prefix in ROLE_PAGE_ACCESS[role])


def default_page_for(role: Role | None) -> str:
    if role is None:
        return FALLBACK_PAGE
    return ROLE_DEFAULT_PAGE.get(role, FALLBACK_PAGE)


def is_staff(role: str | Role | None) -> bool:
    parsed = role if isinstance(role, Role) else Role.parse(role)
    return parsed in STAFF_ROLES
