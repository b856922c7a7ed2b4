# Overview: Service-layer aggregates for the staff dashboard; inventory, sales and delivery figures.

"""
Dashboard Analytics Service

One read-only snapshot over a trailing window of `period` days:
- inventory overview (counts, low stock, inventory value at list price)
- sales totals, top products, sales by category and a daily trend
- delivery counts per status for shipments assigned in the window
- the latest sales and the products that need restocking

Money is summed in cents and reported both as cents and as a decimal amount.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Product, ProductHistory, ToShip
from ..models.catalog import PRODUCT_STATUS_OUT_OF_STOCK
from ..models.deliveries import STATUS_CANCELLED, STATUS_DELIVERED, STATUS_IN_TRANSIT, STATUS_PENDING
from ..validation import ValidationError, parse_int
from warehouse.time_utils import to_utc_z, utcnow


DEFAULT_PERIOD_DAYS = 30
MAX_PERIOD_DAYS = 3650
LOW_STOCK_THRESHOLD = 10
TOP_PRODUCTS_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10
STOCK_ALERT_LIMIT = 10


def parse_period(value) -> int:
    if value is None or value == "":
        return DEFAULT_PERIOD_DAYS
    days = parse_int(value, "period")
    if days < 1 or days > MAX_PERIOD_DAYS:
        raise ValidationError(f"period must be between 1 and {MAX_PERIOD_DAYS} days")
    return days


def _money(cents) -> dict:
    cents = int(cents or 0)
    return {"cents": cents, "amount": cents / 100}


def inventory_overview() -> dict:
    out_of_stock = db.or_(Product.stock == 0, Product.status == PRODUCT_STATUS_OUT_OF_STOCK)
    low_stock = db.and_(
        Product.stock > 0,
        Product.stock <= LOW_STOCK_THRESHOLD,
        Product.status != PRODUCT_STATUS_OUT_OF_STOCK,
    )

    total, out_count, low_count, value_cents = db.session.query(
        func.count(Product.id),
        func.coalesce(func.sum(db.case((out_of_stock, 1), else_=0)), 0),
        func.coalesce(func.sum(db.case((low_stock, 1), else_=0)), 0),
        func.coalesce(func.sum(Product.price_cents * Product.stock), 0),
    ).one()

    value = _money(value_cents)
    return {
        "totalProducts": int(total),
        "outOfStockProducts": int(out_count),
        "lowStockProducts": int(low_count),
        "totalInventoryValue": value["amount"],
        "totalInventoryValueCents": value["cents"],
    }


def _sales_totals(since: datetime) -> dict:
    sales_cents, quantity, transactions = db.session.query(
        func.coalesce(func.sum(ProductHistory.total_amount_cents), 0),
        func.coalesce(func.sum(ProductHistory.quantity_sold), 0),
        func.count(ProductHistory.id),
    ).filter(ProductHistory.sale_date >= since).one()

    transactions = int(transactions)
    average_cents = round(int(sales_cents) / transactions) if transactions else 0
    return {
        "totalSales": int(sales_cents) / 100,
        "totalSalesCents": int(sales_cents),
        "totalQuantitySold": int(quantity),
        "totalTransactions": transactions,
        "averageOrderValue": average_cents / 100,
        "averageOrderValueCents": average_cents,
    }


def _top_products(since: datetime) -> list[dict]:
    rows = (
        db.session.query(
            ProductHistory.product_id,
            func.max(ProductHistory.product_name),
            func.max(ProductHistory.product_sku),
            func.sum(ProductHistory.quantity_sold).label("qty"),
            func.sum(ProductHistory.total_amount_cents),
        )
        .filter(ProductHistory.sale_date >= since)
        .group_by(ProductHistory.product_id)
        .order_by(db.desc("qty"), ProductHistory.product_id)
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )
    return [
        {
            "productId": pid,
            "productName": name,
            "productSku": sku,
            "totalQuantity": int(qty),
            "totalRevenue": int(revenue) / 100,
        }
        for pid, name, sku, qty, revenue in rows
    ]


def _sales_by_category(since: datetime) -> list[dict]:
    rows = (
        db.session.query(
            ProductHistory.category,
            func.sum(ProductHistory.total_amount_cents).label("sales"),
            func.sum(ProductHistory.quantity_sold),
        )
        .filter(ProductHistory.sale_date >= since)
        .group_by(ProductHistory.category)
        .order_by(db.desc("sales"))
        .all()
    )
    return [
        {"name": category or "Uncategorized", "sales": int(sales) / 100, "quantity": int(qty)}
        for category, sales, qty in rows
    ]


def _daily_sales(since: datetime) -> list[dict]:
    daily: "OrderedDict[str, dict]" = OrderedDict()
    rows = (
        db.session.query(ProductHistory.sale_date, ProductHistory.total_amount_cents, ProductHistory.quantity_sold)
        .filter(ProductHistory.sale_date >= since)
        .order_by(ProductHistory.sale_date.asc())
        .all()
    )
    for sale_date, amount, qty in rows:
        day = sale_date.strftime("%Y-%m-%d")
        bucket = daily.setdefault(day, {"date": day, "salesCents": 0, "quantity": 0, "transactions": 0})
        bucket["salesCents"] += amount
        bucket["quantity"] += qty
        bucket["transactions"] += 1
    for bucket in daily.values():
        bucket["sales"] = bucket["salesCents"] / 100
    return list(daily.values())


def _delivery_counts(since: datetime) -> dict:
    counts = dict(
        db.session.query(ToShip.status, func.count(ToShip.id))
        .filter(ToShip.created_at >= since)
        .group_by(ToShip.status)
        .all()
    )
    return {
        "pending": counts.get(STATUS_PENDING, 0),
        "inTransit": counts.get(STATUS_IN_TRANSIT, 0),
        "delivered": counts.get(STATUS_DELIVERED, 0),
        "cancelled": counts.get(STATUS_CANCELLED, 0),
    }


def _recent_activity(since: datetime) -> list[dict]:
    rows = (
        db.session.query(ProductHistory)
        .filter(ProductHistory.sale_date >= since)
        .order_by(ProductHistory.sale_date.desc(), ProductHistory.id.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
        .all()
    )
    return [
        {
            "id": row.id,
            "productName": row.product_name,
            "quantitySold": row.quantity_sold,
            "totalAmount": row.total_amount_cents / 100,
            "saleDate": to_utc_z(row.sale_date),
            "soldBy": {"name": row.sold_by_name, "role": row.sold_by_role},
        }
        for row in rows
    ]


def stock_alerts() -> list[dict]:
    """Products at or below the low-stock threshold, emptiest first."""
    rows = (
        db.session.query(Product)
        .filter(Product.stock <= LOW_STOCK_THRESHOLD)
        .order_by(Product.stock.asc(), Product.name.asc())
        .limit(STOCK_ALERT_LIMIT)
        .all()
    )
    return [
        {"id": p.id, "name": p.name, "sku": p.sku, "stock": p.stock, "status": p.status}
        for p in rows
    ]


def dashboard(period_days: int = DEFAULT_PERIOD_DAYS, now: datetime | None = None) -> dict:
    now = now or utcnow()
    since = now - timedelta(days=period_days)

    return {
        "overview": inventory_overview(),
        "sales": _sales_totals(since),
        "topProducts": _top_products(since),
        "salesByCategory": _sales_by_category(since),
        "dailySales": _daily_sales(since),
        "deliveries": _delivery_counts(since),
        "recentActivity": _recent_activity(since),
        "stockAlerts": stock_alerts(),
        "period": period_days,
    }
