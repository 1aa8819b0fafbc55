# Overview: Service-layer operations for reporting; read-only folds over orders and expenses.

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Channel, Expense, Order, OrderItem, Shipment
from ..models.finance import EXPENSE_TYPE_EXPENSE, EXPENSE_TYPE_INCOME
from gemalery.time_utils import is_date_only, parse_iso_datetime, to_utc_z, utcnow

SALES_DEFAULT_DAYS = 30
ZERO = Decimal("0")


def _parse_bound(value: str | None) -> datetime | None:
    # Reports never fail on a bad date; the caller's default wins instead
    try:
        return parse_iso_datetime(value)
    except ValueError:
        return None


def _parse_range(
    start: str | None,
    end: str | None,
    *,
    default_start: datetime,
    default_end: datetime,
) -> tuple[datetime, datetime]:
    """
    Resolve a report window as [start, end).

    A bare YYYY-MM-DD end date covers that whole day.
    """
    start_dt = _parse_bound(start) or default_start
    end_dt = _parse_bound(end)
    if end_dt is None:
        end_dt = default_end
    elif is_date_only(end):
        end_dt = end_dt + timedelta(days=1)
    return start_dt, end_dt


def _sum(value) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def sales_by_day(start: str | None = None, end: str | None = None, channel: str | None = None) -> dict:
    """
    Revenue per UTC calendar day: subtotal - discount_total + shipping_cost.
    Defaults to the last 30 days.
    """
    now = utcnow()
    start_dt, end_dt = _parse_range(
        start, end, default_start=now - timedelta(days=SALES_DEFAULT_DAYS), default_end=now
    )

    query = db.session.query(Order).filter(Order.created_at >= start_dt, Order.created_at < end_dt)
    if channel:
        query = query.join(Channel, Order.channel_id == Channel.id).filter(Channel.key == channel)

    days: OrderedDict[str, dict] = OrderedDict()
    for order in query.order_by(Order.created_at.asc()).all():
        day = order.created_at.date().isoformat()
        bucket = days.setdefault(day, {"date": day, "orders": 0, "revenue": ZERO})
        bucket["orders"] += 1
        bucket["revenue"] += (
            _sum(order.subtotal) - _sum(order.discount_total) + _sum(order.shipping_cost)
        )

    rows = [{**b, "revenue": str(b["revenue"])} for b in days.values()]
    total = sum((Decimal(r["revenue"]) for r in rows), ZERO)
    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "channel": channel,
        "days": rows,
        "total_orders": sum(r["orders"] for r in rows),
        "total_revenue": str(total),
    }


def profit_loss(start: str | None = None, end: str | None = None) -> dict:
    """
    Period profit and loss from stored snapshots.

    gross_profit = revenue - cogs - fees
    net_profit   = revenue + shipping_revenue - discounts - cogs - fees
                   - shipping_cost - expenses

    cogs sums OrderItem.cogs_snapshot * qty, so later cost changes never
    rewrite past periods. INCOME entries are reported as other_income and
    stay out of net_profit.
    """
    now = utcnow()
    start_dt, end_dt = _parse_range(
        start, end, default_start=now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), default_end=now
    )

    in_range = (Order.created_at >= start_dt, Order.created_at < end_dt)

    revenue, shipping_revenue, discounts, fees, order_count = (
        db.session.query(
            func.sum(Order.subtotal),
            func.sum(Order.shipping_cost),
            func.sum(Order.discount_total),
            func.sum(Order.fees_total),
            func.count(Order.id),
        )
        .filter(*in_range)
        .one()
    )

    cogs = ZERO
    cogs_rows = (
        db.session.query(OrderItem.cogs_snapshot, OrderItem.qty)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(*in_range)
        .all()
    )
    for unit_cost, qty in cogs_rows:
        cogs += _sum(unit_cost) * qty

    shipping_cost = _sum(
        db.session.query(func.sum(Shipment.actual_cost))
        .join(Order, Shipment.order_id == Order.id)
        .filter(*in_range)
        .scalar()
    )

    def _expense_total(expense_type: str) -> Decimal:
        return _sum(
            db.session.query(func.sum(Expense.amount))
            .filter(Expense.type == expense_type, Expense.date >= start_dt, Expense.date < end_dt)
            .scalar()
        )

    expenses = _expense_total(EXPENSE_TYPE_EXPENSE)
    other_income = _expense_total(EXPENSE_TYPE_INCOME)

    revenue = _sum(revenue)
    shipping_revenue = _sum(shipping_revenue)
    discounts = _sum(discounts)
    fees = _sum(fees)

    gross_profit = revenue - cogs - fees
    net_profit = revenue + shipping_revenue - discounts - cogs - fees - shipping_cost - expenses

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "orders": int(order_count or 0),
        "revenue": str(revenue),
        "shipping_revenue": str(shipping_revenue),
        "discounts": str(discounts),
        "fees": str(fees),
        "cogs": str(cogs),
        "shipping_cost": str(shipping_cost),
        "expenses": str(expenses),
        "other_income": str(other_income),
        "gross_profit": str(gross_profit),
        "net_profit": str(net_profit),
    }
