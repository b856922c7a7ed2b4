# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every action must be attributable. Uses bcrypt for password hashing and a
local user table as the identity store.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters with upper, lower, digit and special character
- Emails are normalized to lower-case so lookups are case-insensitive
- Banned users cannot authenticate
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re

from flask import current_app

from ..extensions import db
from ..models import User
from ..permissions import Role
from ..validation import ConflictError, NotFoundError, ValidationError
from warehouse.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountBannedError(Exception):
    """Raised when a banned user presents valid credentials."""

    def __init__(self, reason: str | None = None):
        self.reason = reason
        super().__init__(reason or "Account is banned")


def normalize_email(email: str | None) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def find_user_by_email(email: str) -> User | None:
    email = normalize_email(email)
    if not email:
        return None
    return db.session.query(User).filter(User.email == email).first()


def email_exists(email: str) -> bool:
    """Case-insensitive existence check used by the sign-in page."""
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    return find_user_by_email(email) is not None


def create_user(
    name: str,
    email: str,
    password: str,
    role: str = Role.USER.value,
    email_verified: bool = False,
) -> User:
    """
    Create a new user with bcrypt password hashing.

    Raises:
        ValidationError: blank name/email or unknown role
        ConflictError: email already registered
        PasswordValidationError: weak password
    """
    name = (name or "").strip()
    email = normalize_email(email)

    errors = []
    if not name:
        errors.append("Name is required")
    if not email or "@" not in email:
        errors.append("A valid email is required")
    parsed_role = Role.parse(role)
    if parsed_role is None:
        errors.append(f"Invalid role: {role}")
    if errors:
        raise ValidationError(errors)

    if find_user_by_email(email):
        raise ConflictError("Email already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=parsed_role.value,
        email_verified=email_verified,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate with email and password.

    Returns the User on success (stamping last_login_at), None on bad credentials.
    Raises AccountBannedError when the credentials are right but the user is banned.
    """
    user = find_user_by_email(email)
    if not user:
        return None

    if not verify_password(password or "", user.password_hash):
        return None

    if user.banned:
        raise AccountBannedError(user.ban_reason)

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def set_role(user_id: int, role: str) -> User:
    parsed = Role.parse(role)
    if parsed is None:
        raise ValidationError(f"Invalid role: {role}")
    user = get_user(user_id)
    user.role = parsed.value
    db.session.commit()
    return user


def set_banned(user_id: int, banned: bool, reason: str | None = None) -> User:
    user = get_user(user_id)
    user.banned = banned
    user.ban_reason = (reason or "").strip() or None if banned else None
    db.session.commit()
    return user


def list_users(*, role: str | None = None, search: str | None = None) -> list[User]:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    if search:
        like = f"%{search.strip().lower()}%"
        query = query.filter(db.or_(db.func.lower(User.name).like(like), User.email.like(like)))
    return query.order_by(User.created_at.desc(), User.id.desc()).all()
