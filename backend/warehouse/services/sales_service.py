"""
Direct Sales Service

A direct sale ("mark as sold") decrements Product.stock and appends one
ProductHistory row in a single transaction. The product row is locked for
update so two concurrent sales cannot both pass the stock check.
"""

from ..extensions import db
from ..models import Product, ProductHistory, User
from ..validation import NotFoundError, require_positive_quantity
from warehouse.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


SALE_TYPE_MANUAL = "manual_deduction"


class InsufficientStockError(ValueError):
    """Requested quantity exceeds Product.stock."""

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock. Available: {available}, Requested: {requested}")


def lock_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def take_stock(product: Product, quantity: int, actor: User) -> None:
    """Decrement a locked product's stock, stamping updatedBy. Caller commits."""
    if product.stock < quantity:
        raise InsufficientStockError(product.stock, quantity)
    product.stock -= quantity
    product.updated_by_name = actor.name
    product.updated_by_role = actor.role


def record_sale(*, product_id: int, quantity, actor: User, notes: str | None = None) -> tuple[Product, ProductHistory]:
    """
    Deduct stock and write the sales ledger row atomically.

    Raises ValidationError (bad quantity), NotFoundError, InsufficientStockError.
    On any failure the session is rolled back and nothing is written.
    """
    qty = require_positive_quantity(quantity, "Quantity to deduct must be greater than 0")

    def _op():
        try:
            product = lock_product(product_id)
            take_stock(product, qty, actor)

            history = ProductHistory(
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                category=product.category,
                quantity_sold=qty,
                unit_price_cents=product.price_cents,
                total_amount_cents=product.price_cents * qty,
                sale_date=utcnow(),
                sold_by_name=actor.name,
                sold_by_role=actor.role or "user",
                notes=(notes or "").strip() if isinstance(notes, str) else "",
                sale_type=SALE_TYPE_MANUAL,
            )
            db.session.add(history)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return product, history

    return run_with_retry(_op)
