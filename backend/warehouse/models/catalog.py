from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from warehouse.time_utils import to_utc_z


PRODUCT_STATUS_ACTIVE = "active"
PRODUCT_STATUS_INACTIVE = "inactive"
PRODUCT_STATUS_OUT_OF_STOCK = "out-of-stock"
PRODUCT_STATUSES = (PRODUCT_STATUS_ACTIVE, PRODUCT_STATUS_INACTIVE, PRODUCT_STATUS_OUT_OF_STOCK)


class Category(db.Model):
    """
    Product category.

    Names are unique case-insensitively; routes pre-check with lower() before
    insert, the unique column only catches exact duplicates.
    """
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    created_by_name = db.Column(db.String(255), nullable=False)
    created_by_role = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "createdBy": {"name": self.created_by_name, "role": self.created_by_role},
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data and the authoritative stock counter.

    SKU is stored upper-case and is globally unique. Status is derived from
    stock on every insert/update (see apply_stock_status); shipments and
    direct sales decrement stock, they never own it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_category", "category"),
        db.Index("ix_products_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)
    image = db.Column(db.String(512), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)

    category = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PRODUCT_STATUS_ACTIVE)

    created_by_name = db.Column(db.String(255), nullable=False)
    created_by_role = db.Column(db.String(16), nullable=False)
    updated_by_name = db.Column(db.String(255), nullable=True)
    updated_by_role = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock}>"

    def apply_stock_status(self) -> None:
        if self.stock == 0:
            self.status = PRODUCT_STATUS_OUT_OF_STOCK
        elif self.status == PRODUCT_STATUS_OUT_OF_STOCK and self.stock and self.stock > 0:
            self.status = PRODUCT_STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "image": self.image,
            "price": self.price_cents / 100,
            "priceCents": self.price_cents,
            "stock": self.stock,
            "category": self.category,
            "status": self.status,
            "createdBy": {"name": self.created_by_name, "role": self.created_by_role},
            "updatedBy": (
                {"name": self.updated_by_name, "role": self.updated_by_role}
                if self.updated_by_name else None
            ),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _derive_product_status(mapper, connection, target: Product) -> None:
    target.apply_stock_status()


class ProductHistory(db.Model):
    """
    Append-only sales ledger.

    total_amount_cents is unit_price_cents * quantity_sold at write time and is
    never recomputed, even if the product price later changes.
    """
    __tablename__ = "product_history"
    __table_args__ = (
        db.CheckConstraint("quantity_sold >= 1", name="ck_product_history_quantity"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_product_history_unit_price"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_product_history_total"),
        db.Index("ix_product_history_product_date", "product_id", "sale_date"),
        db.Index("ix_product_history_sale_date", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Non-owning reference: a deleted product leaves its history behind
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False, index=True)
    category = db.Column(db.String(120), nullable=False)

    quantity_sold = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)
    sold_by_name = db.Column(db.String(255), nullable=True)
    sold_by_role = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=False, default="")

    sale_type = db.Column(db.String(32), nullable=False, default="manual_deduction")
    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "productSku": self.product_sku,
            "category": self.category,
            "quantitySold": self.quantity_sold,
            "unitPrice": self.unit_price_cents / 100,
            "unitPriceCents": self.unit_price_cents,
            "totalAmount": self.total_amount_cents / 100,
            "totalAmountCents": self.total_amount_cents,
            "saleDate": to_utc_z(self.sale_date),
            "soldBy": {"name": self.sold_by_name, "role": self.sold_by_role},
            "notes": self.notes,
            "saleType": self.sale_type,
            "status": self.status,
        }
