"""
Dashboard analytics: inventory overview, sales window, deliveries and alerts.
"""

from datetime import timedelta

import pytest

from warehouse.models import Product, ProductHistory
from warehouse.services import analytics_service
from warehouse.time_utils import utcnow

from conftest import assignment_payload


def _product(db_session, name, sku, price_cents, stock, category):
    p = Product(
        name=name,
        sku=sku,
        price_cents=price_cents,
        stock=stock,
        category=category,
        created_by_name="Ada Admin",
        created_by_role="admin",
    )
    db_session.add(p)
    db_session.commit()
    return p


def _sale(db_session, product, qty, sale_date):
    row = ProductHistory(
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        category=product.category,
        quantity_sold=qty,
        unit_price_cents=product.price_cents,
        total_amount_cents=product.price_cents * qty,
        sale_date=sale_date,
        sold_by_name="Cass Cashier",
        sold_by_role="cashier",
        notes="",
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def catalog(db_session, product):
    steel = _product(db_session, "Steel Bar 10mm", "STL-010", 18550, 40, "Hardware")
    nails = _product(db_session, "Common Nails", "NAIL-001", 500, 0, "Hardware")
    return {"cement": product, "steel": steel, "nails": nails}


class TestInventoryOverview:

    def test_counts_and_value(self, catalog):
        overview = analytics_service.inventory_overview()
        assert overview["totalProducts"] == 3
        assert overview["outOfStockProducts"] == 1
        # Cement sits exactly on the threshold
        assert overview["lowStockProducts"] == 1
        assert overview["totalInventoryValueCents"] == 25000 * 10 + 18550 * 40
        assert overview["totalInventoryValue"] == 9920.0

    def test_empty_catalog(self, db_session):
        overview = analytics_service.inventory_overview()
        assert overview == {
            "totalProducts": 0,
            "outOfStockProducts": 0,
            "lowStockProducts": 0,
            "totalInventoryValue": 0,
            "totalInventoryValueCents": 0,
        }

    def test_stock_alerts_emptiest_first(self, catalog):
        alerts = analytics_service.stock_alerts()
        assert [a["sku"] for a in alerts] == ["NAIL-001", "CEM-001"]
        assert alerts[0]["status"] == "out-of-stock"


class TestSalesWindow:

    @pytest.fixture
    def now(self):
        return utcnow()

    @pytest.fixture
    def sales(self, db_session, catalog, now):
        _sale(db_session, catalog["cement"], 2, now - timedelta(days=1))
        _sale(db_session, catalog["cement"], 1, now - timedelta(days=1, hours=2))
        _sale(db_session, catalog["steel"], 5, now - timedelta(days=2))
        # Outside a 30 day window
        _sale(db_session, catalog["cement"], 4, now - timedelta(days=40))

    def test_totals_and_average(self, sales, now):
        data = analytics_service.dashboard(30, now=now)
        assert data["period"] == 30
        assert data["sales"] == {
            "totalSales": 1677.5,
            "totalSalesCents": 167750,
            "totalQuantitySold": 8,
            "totalTransactions": 3,
            "averageOrderValue": 559.17,
            "averageOrderValueCents": 55917,
        }

    def test_longer_period_includes_older_sales(self, sales, now):
        data = analytics_service.dashboard(60, now=now)
        assert data["sales"]["totalTransactions"] == 4

    def test_top_products_and_categories(self, sales, now):
        data = analytics_service.dashboard(30, now=now)
        assert [p["productSku"] for p in data["topProducts"]] == ["STL-010", "CEM-001"]
        assert data["topProducts"][1]["totalQuantity"] == 3
        assert data["salesByCategory"] == [
            {"name": "Hardware", "sales": 927.5, "quantity": 5},
            {"name": "Construction", "sales": 750.0, "quantity": 3},
        ]

    def test_daily_trend_and_recent_activity(self, sales, now):
        data = analytics_service.dashboard(30, now=now)
        daily = data["dailySales"]
        assert sum(d["transactions"] for d in daily) == 3
        assert sum(d["salesCents"] for d in daily) == 167750
        assert [d["date"] for d in daily] == sorted(d["date"] for d in daily)

        recent = data["recentActivity"]
        assert len(recent) == 3
        assert recent[0]["quantitySold"] == 2
        assert recent[0]["soldBy"] == {"name": "Cass Cashier", "role": "cashier"}
        assert recent[-1]["productName"] == "Steel Bar 10mm"

    def test_no_sales(self, catalog, now):
        data = analytics_service.dashboard(30, now=now)
        assert data["sales"]["totalTransactions"] == 0
        assert data["sales"]["averageOrderValue"] == 0
        assert data["topProducts"] == []
        assert data["dailySales"] == []


class TestDeliveryCounts:

    def test_counts_per_status(self, client, cashier_headers, driver_headers, product, driver_user):
        first = client.post(
            f"/api/products/{product.id}/to-ship", json=assignment_payload(driver_user, quantity=1),
            headers=cashier_headers,
        ).get_json()["toShipItem"]
        client.post(
            f"/api/products/{product.id}/to-ship", json=assignment_payload(driver_user, quantity=1),
            headers=cashier_headers,
        )
        client.patch(f"/api/deliveries/{first['id']}", json={"status": "in-transit"}, headers=driver_headers)

        data = analytics_service.dashboard(30)
        assert data["deliveries"] == {"pending": 1, "inTransit": 1, "delivered": 0, "cancelled": 0}


class TestAnalyticsEndpoint:

    def test_staff_gets_snapshot(self, client, cashier_headers, catalog):
        resp = client.get("/api/analytics", headers=cashier_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["period"] == analytics_service.DEFAULT_PERIOD_DAYS
        assert set(data) == {
            "overview", "sales", "topProducts", "salesByCategory", "dailySales",
            "deliveries", "recentActivity", "stockAlerts", "period",
        }

    def test_period_param(self, client, admin_headers, db_session):
        resp = client.get("/api/analytics?period=7", headers=admin_headers)
        assert resp.get_json()["period"] == 7

    @pytest.mark.parametrize("period", ["abc", "0", "-3", "1.5", "99999"])
    def test_invalid_period(self, client, admin_headers, period):
        resp = client.get(f"/api/analytics?period={period}", headers=admin_headers)
        assert resp.status_code == 400

    def test_driver_denied(self, client, driver_headers):
        resp = client.get("/api/analytics", headers=driver_headers)
        assert resp.status_code == 403

    def test_failure_returns_json_500(self, client, admin_headers, monkeypatch):
        def fail(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(analytics_service, "dashboard", fail)
        resp = client.get("/api/analytics", headers=admin_headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Failed to fetch analytics"}
