# backend/warehouse/services/products_service.py
"""
Products Service

Product master data and the stock counter. SKUs are upper-cased and unique
across the catalog. Status is derived from stock by a mapper hook on every
write, so callers never set out-of-stock by hand.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product, User
from ..models.catalog import PRODUCT_STATUSES
from ..validation import (
    ConflictError,
    FieldRule,
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    fields={
        "name": FieldRule("name", label="Product name", required=True,
                          required_message="Product name is required"),
        "sku": FieldRule("sku", label="SKU", required=True, upper=True,
                         required_message="SKU is required"),
        "price": FieldRule("price_cents", kind="money", label="Price", required=True,
                           required_message="Price is required", min_value=0,
                           min_message="Price cannot be negative"),
        "stock": FieldRule("stock", kind="int", label="Stock", required=True,
                           required_message="Stock is required", min_value=0,
                           min_message="Stock cannot be negative"),
        "category": FieldRule("category", label="Category", required=True,
                              required_message="Category is required"),
        "description": FieldRule("description", label="Description"),
        "image": FieldRule("image", label="Image"),
        "status": FieldRule("status", label="Status", choices=PRODUCT_STATUSES),
    },
    ignored_fields=frozenset({"id", "createdBy", "updatedBy", "createdAt", "updatedAt", "priceCents"}),
)

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "price_cents", "stock", "category", "description", "image", "status"}

FILTER_ALL = "all"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def validate_product_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


def list_products(*, search: str | None = None, category: str | None = None, status: str | None = None) -> list[Product]:
    """
    Newest first. search matches name, SKU or description (case-insensitive);
    category/status equal to "all" (or empty) disable that filter.
    """
    query = db.session.query(Product)

    if search and search.strip():
        like = f"%{search.strip().lower()}%"
        query = query.filter(db.or_(
            db.func.lower(Product.name).like(like),
            db.func.lower(Product.sku).like(like),
            db.func.lower(db.func.coalesce(Product.description, "")).like(like),
        ))

    if category and category != FILTER_ALL:
        query = query.filter(Product.category == category)

    if status and status != FILTER_ALL:
        query = query.filter(Product.status == status)

    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if not p:
        raise NotFoundError("Product not found")
    return p


def _ensure_sku_available(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists")


def create_product(*, patch: dict, actor: User) -> Product:
    """
    Create product using a validated patch dict.

    Raises ConflictError if the SKU already exists.
    """
    _ensure_sku_available(patch["sku"])

    p = Product(created_by_name=actor.name, created_by_role=actor.role)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    return p


def update_product(*, product_id: int, patch: dict, actor: User) -> Product:
    """
    Update a product. A changed SKU is re-checked for uniqueness excluding self.

    Raises NotFoundError, ConflictError.
    """
    p = get_product(product_id)

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_sku_available(patch["sku"], exclude_id=p.id)

    apply_product_patch(p, patch)
    p.updated_by_name = actor.name
    p.updated_by_role = actor.role

    db.session.commit()
    return p


def delete_product(*, product_id: int) -> Product:
    """
    Hard delete. Sales history and shipments keep their own product snapshot.

    Raises NotFoundError.
    """
    p = get_product(product_id)
    db.session.delete(p)
    db.session.commit()
    return p
