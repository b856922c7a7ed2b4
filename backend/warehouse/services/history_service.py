# Overview: Service-layer reads over the product sales ledger (listing, statistics, admin delete).

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, time, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import ProductHistory
from ..validation import NotFoundError, ValidationError
from warehouse.time_utils import parse_iso_datetime, utcnow


MAX_PAGE_SIZE = 100
TOP_PRODUCTS_LIMIT = 10
DAILY_WINDOW_DAYS = 30


def _parse_date(value: str | None, label: str) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{label} must be an ISO-8601 date")


def list_history(
    *,
    page: int = 1,
    limit: int = 20,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    product_id: int | None = None,
    category: str | None = None,
    status: str | None = None,
) -> dict:
    """
    Newest sale first. endDate is inclusive through 23:59:59.999999 of that day.
    """
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = db.session.query(ProductHistory)

    if search and search.strip():
        like = f"%{search.strip().lower()}%"
        query = query.filter(db.or_(
            func.lower(ProductHistory.product_name).like(like),
            func.lower(ProductHistory.product_sku).like(like),
            func.lower(ProductHistory.category).like(like),
            func.lower(func.coalesce(ProductHistory.sold_by_name, "")).like(like),
            func.lower(ProductHistory.notes).like(like),
        ))

    start = _parse_date(start_date, "startDate")
    end = _parse_date(end_date, "endDate")
    if start is not None:
        query = query.filter(ProductHistory.sale_date >= start)
    if end is not None:
        end = datetime.combine(end.date(), time.max)
        query = query.filter(ProductHistory.sale_date <= end)

    if product_id is not None:
        query = query.filter(ProductHistory.product_id == product_id)
    if category:
        query = query.filter(ProductHistory.category == category)
    if status:
        query = query.filter(ProductHistory.status == status)

    total = query.count()
    rows = (
        query.order_by(ProductHistory.sale_date.desc(), ProductHistory.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_pages = -(-total // limit)

    return {
        "history": [r.to_dict() for r in rows],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalCount": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
            "limit": limit,
        },
    }


def _period_totals(since: datetime) -> dict:
    sales, quantity, transactions = db.session.query(
        func.coalesce(func.sum(ProductHistory.total_amount_cents), 0),
        func.coalesce(func.sum(ProductHistory.quantity_sold), 0),
        func.count(ProductHistory.id),
    ).filter(ProductHistory.sale_date >= since).one()
    return {
        "totalSalesCents": int(sales),
        "totalSales": int(sales) / 100,
        "totalQuantity": int(quantity),
        "totalTransactions": int(transactions),
    }


def sales_stats(now: datetime | None = None) -> dict:
    now = now or utcnow()
    today = datetime.combine(now.date(), time.min)
    start_of_month = today.replace(day=1)
    # Weeks start on Sunday
    start_of_week = today - timedelta(days=(today.weekday() + 1) % 7)
    start_of_year = today.replace(month=1, day=1)

    top_rows = (
        db.session.query(
            ProductHistory.product_id,
            func.max(ProductHistory.product_name),
            func.max(ProductHistory.product_sku),
            func.max(ProductHistory.category),
            func.sum(ProductHistory.quantity_sold).label("qty"),
            func.sum(ProductHistory.total_amount_cents),
            func.count(ProductHistory.id),
        )
        .group_by(ProductHistory.product_id)
        .order_by(db.desc("qty"))
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )
    top_products = [
        {
            "productId": pid,
            "productName": name,
            "productSku": sku,
            "category": category,
            "totalQuantity": int(qty),
            "totalRevenue": int(revenue) / 100,
            "transactionCount": int(count),
        }
        for pid, name, sku, category, qty, revenue, count in top_rows
    ]

    category_rows = (
        db.session.query(
            ProductHistory.category,
            func.sum(ProductHistory.total_amount_cents).label("sales"),
            func.sum(ProductHistory.quantity_sold),
            func.count(ProductHistory.id),
        )
        .group_by(ProductHistory.category)
        .order_by(db.desc("sales"))
        .all()
    )
    by_category = [
        {
            "category": category,
            "totalSales": int(sales) / 100,
            "totalQuantity": int(qty),
            "transactionCount": int(count),
        }
        for category, sales, qty, count in category_rows
    ]

    # Grouped in Python to stay portable across SQLite and Postgres date functions
    since = now - timedelta(days=DAILY_WINDOW_DAYS)
    daily: "OrderedDict[str, dict]" = OrderedDict()
    recent = (
        db.session.query(ProductHistory.sale_date, ProductHistory.total_amount_cents, ProductHistory.quantity_sold)
        .filter(ProductHistory.sale_date >= since)
        .order_by(ProductHistory.sale_date.asc())
        .all()
    )
    for sale_date, amount, qty in recent:
        day = sale_date.strftime("%Y-%m-%d")
        bucket = daily.setdefault(day, {"date": day, "totalSalesCents": 0, "totalQuantity": 0, "transactionCount": 0})
        bucket["totalSalesCents"] += amount
        bucket["totalQuantity"] += qty
        bucket["transactionCount"] += 1
    for bucket in daily.values():
        bucket["totalSales"] = bucket["totalSalesCents"] / 100

    return {
        "monthlyStats": _period_totals(start_of_month),
        "weeklyStats": _period_totals(start_of_week),
        "yearlyStats": _period_totals(start_of_year),
        "topProducts": top_products,
        "salesByCategory": by_category,
        "dailySales": list(daily.values()),
    }


def delete_history_entry(entry_id: int) -> None:
    row = db.session.get(ProductHistory, entry_id)
    if not row:
        raise NotFoundError("History entry not found")
    db.session.delete(row)
    db.session.commit()
