"""
Sales-by-day and profit/loss reports.

Orders are inserted with fixed created_at values so report windows are
deterministic.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from gemalery.models import Channel, Expense, Order, OrderItem, Shipment
from gemalery.services import reporting_service


def insert_order(db_session, variant, *, channel_key="offline", created_at, subtotal, qty=1,
                 discount="0", fees="0", shipping="0", cogs="0", status="paid"):
    channel = db_session.query(Channel).filter_by(key=channel_key).one()
    order = Order(
        channel_id=channel.id,
        status=status,
        subtotal=Decimal(subtotal),
        discount_total=Decimal(discount),
        fees_total=Decimal(fees),
        shipping_cost=Decimal(shipping),
        stock_committed=True,
        created_at=created_at,
    )
    order.items = [OrderItem(
        product_variant_id=variant.id,
        qty=qty,
        price=Decimal(subtotal) / qty,
        cogs_snapshot=Decimal(cogs),
    )]
    db_session.add(order)
    db_session.commit()
    return order


def insert_expense(db_session, amount, *, date, expense_type="EXPENSE", category="Sewa"):
    expense = Expense(type=expense_type, category=category, amount=Decimal(amount), date=date)
    db_session.add(expense)
    db_session.commit()
    return expense


# =============================================================================
# PROFIT / LOSS
# =============================================================================

class TestProfitLoss:

    def test_gross_and_net(self, db_session, channels, variant_a):
        insert_order(db_session, variant_a, created_at=datetime(2026, 3, 10, 9, 0),
                     subtotal="100", qty=2, discount="10", fees="5", cogs="20")
        insert_expense(db_session, "15", date=datetime(2026, 3, 12))

        report = reporting_service.profit_loss(start="2026-03-01", end="2026-03-31")

        assert report["orders"] == 1
        assert Decimal(report["revenue"]) == Decimal("100")
        assert Decimal(report["cogs"]) == Decimal("40")
        assert Decimal(report["gross_profit"]) == Decimal("55")
        assert Decimal(report["net_profit"]) == Decimal("30")

    def test_cogs_uses_snapshot_not_current_cost(self, db_session, channels, variant_a):
        insert_order(db_session, variant_a, created_at=datetime(2026, 3, 10), subtotal="100", cogs="20")
        variant_a.cogs_current = Decimal("999")
        db_session.commit()

        report = reporting_service.profit_loss(start="2026-03-01", end="2026-03-31")
        assert Decimal(report["cogs"]) == Decimal("20")

    def test_shipping_and_income(self, db_session, channels, variant_a):
        order = insert_order(db_session, variant_a, created_at=datetime(2026, 3, 5),
                             subtotal="100", shipping="16")
        db_session.add(Shipment(order_id=order.id, awb="JNE1112223", actual_cost=Decimal("12")))
        db_session.commit()
        insert_expense(db_session, "50", date=datetime(2026, 3, 6), expense_type="INCOME", category="Sponsor")

        report = reporting_service.profit_loss(start="2026-03-01", end="2026-03-31")

        assert Decimal(report["shipping_revenue"]) == Decimal("16")
        assert Decimal(report["shipping_cost"]) == Decimal("12")
        assert Decimal(report["other_income"]) == Decimal("50")
        assert Decimal(report["expenses"]) == Decimal("0")
        assert Decimal(report["net_profit"]) == Decimal("104")

    def test_date_only_end_covers_whole_day(self, db_session, channels, variant_a):
        insert_order(db_session, variant_a, created_at=datetime(2026, 3, 31, 23, 59), subtotal="100")
        insert_order(db_session, variant_a, created_at=datetime(2026, 4, 1, 0, 0), subtotal="7")

        report = reporting_service.profit_loss(start="2026-03-01", end="2026-03-31")
        assert report["orders"] == 1
        assert Decimal(report["revenue"]) == Decimal("100")

    def test_empty_period(self, db_session, channels):
        report = reporting_service.profit_loss(start="2020-01-01", end="2020-01-31")
        assert report["orders"] == 0
        assert Decimal(report["net_profit"]) == Decimal("0")


# =============================================================================
# SALES BY DAY
# =============================================================================

class TestSalesByDay:

    def test_groups_by_utc_day(self, db_session, channels, variant_a):
        insert_order(db_session, variant_a, created_at=datetime(2026, 5, 1, 8), subtotal="100", shipping="10")
        insert_order(db_session, variant_a, created_at=datetime(2026, 5, 1, 20), subtotal="50", discount="5")
        insert_order(db_session, variant_a, created_at=datetime(2026, 5, 3, 12), subtotal="30")

        report = reporting_service.sales_by_day(start="2026-05-01", end="2026-05-31")

        assert [d["date"] for d in report["days"]] == ["2026-05-01", "2026-05-03"]
        assert report["days"][0]["orders"] == 2
        assert Decimal(report["days"][0]["revenue"]) == Decimal("155")
        assert report["total_orders"] == 3
        assert Decimal(report["total_revenue"]) == Decimal("185")

    def test_channel_filter(self, db_session, channels, variant_a):
        insert_order(db_session, variant_a, channel_key="web", created_at=datetime(2026, 5, 2), subtotal="100")
        insert_order(db_session, variant_a, channel_key="shopee", created_at=datetime(2026, 5, 2), subtotal="70")

        report = reporting_service.sales_by_day(start="2026-05-01", end="2026-05-31", channel="shopee")
        assert report["channel"] == "shopee"
        assert report["total_orders"] == 1
        assert Decimal(report["total_revenue"]) == Decimal("70")

    @pytest.mark.parametrize("bad", ["yesterday", "2026-13-45", "not-a-date"])
    def test_malformed_dates_fall_back_to_default(self, db_session, channels, bad):
        report = reporting_service.sales_by_day(start=bad, end=bad)
        assert report["days"] == []
        assert report["start"].endswith("Z")


class TestReportRoutes:

    def test_requires_staff(self, client, channels, customer_headers):
        resp = client.get("/api/reports/profit-loss", headers=customer_headers)
        assert resp.status_code == 403

    def test_profit_loss_route(self, client, db_session, channels, variant_a, admin_headers):
        insert_order(db_session, variant_a, created_at=datetime(2026, 6, 2), subtotal="100", cogs="40")
        resp = client.get("/api/reports/profit-loss?start=2026-06-01&end=2026-06-30", headers=admin_headers)
        assert resp.status_code == 200
        assert Decimal(resp.get_json()["gross_profit"]) == Decimal("60")

    def test_from_to_window(self, client, db_session, channels, variant_a, admin_headers):
        insert_order(db_session, variant_a, created_at=datetime(2026, 6, 2), subtotal="100", cogs="40")
        insert_order(db_session, variant_a, created_at=datetime(2026, 7, 15), subtotal="500", cogs="100")

        resp = client.get("/api/reports/profit-loss?from=2026-06-01&to=2026-06-30", headers=admin_headers)
        assert resp.status_code == 200
        assert Decimal(resp.get_json()["gross_profit"]) == Decimal("60")

        resp = client.get("/api/reports/sales?from=2026-07-01&to=2026-07-31", headers=admin_headers)
        assert resp.get_json()["total_orders"] == 1

    def test_sales_route(self, client, channels, admin_headers):
        resp = client.get("/api/reports/sales?start=garbage", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["total_orders"] == 0
