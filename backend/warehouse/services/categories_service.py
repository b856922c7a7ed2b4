"""Category list/create. Names are unique case-insensitively."""
from __future__ import annotations

from ..extensions import db
from ..models import Category, User
from ..validation import ConflictError, ValidationError


def list_categories(search: str | None = None) -> list[Category]:
    query = db.session.query(Category)
    if search and search.strip():
        query = query.filter(db.func.lower(Category.name).like(f"%{search.strip().lower()}%"))
    return query.order_by(Category.name.asc()).all()


def create_category(*, name: str, actor: User) -> Category:
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Category name is required")

    length = Category.__table__.c.name.type.length
    if len(name) > length:
        raise ValidationError(f"Category name exceeds max length {length}")

    existing = db.session.query(Category).filter(db.func.lower(Category.name) == name.lower()).first()
    if existing:
        raise ConflictError("Category already exists")

    category = Category(name=name, created_by_name=actor.name, created_by_role=actor.role)
    db.session.add(category)
    db.session.commit()
    return category
