# Overview: Sales reports over the order ledger; only fulfilled orders count.

"""
Sales reporting.

An order counts once it is fulfilled (confirmed or completed), the same
rule that decides whether it consumed stock. Orders are placed in time by
confirmed_at, the instant the sale took effect, so a report and the
point-in-time inventory agree on when each sale happened. Cancelled
orders, including ones that were confirmed and then reversed, never count.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Order, OrderItem, Product
from ..models.catalog import money
from ..time_utils import to_utc_z
from ..validation import CENTS, coerce_positive_int
from .lifecycle import FULFILLED_STATUSES, OrderStatus, PaymentStatus

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%W",
    "month": "%Y-%m",
}

# Most recent periods returned by the sales report
MAX_PERIODS = 30

DEFAULT_TOP_LIMIT = 10
MAX_TOP_LIMIT = 100


def _fulfilled_values() -> list[str]:
    return sorted(s.value for s in FULFILLED_STATUSES)


def _in_range(query, date_from: datetime | None, date_to: datetime | None):
    if date_from is not None:
        query = query.filter(Order.confirmed_at >= date_from)
    if date_to is not None:
        query = query.filter(Order.confirmed_at <= date_to)
    return query


def sales_report(
    *,
    group_by: str = "day",
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    """
    Revenue per day, week or month, newest period first.

    Each row carries the order count, revenue, average order value and how
    many of those orders are paid and completed.
    """
    fmt = PERIOD_FORMATS.get(group_by)
    if fmt is None:
        raise ValidationError(
            "group_by must be day, week, or month",
            details={"field": "group_by", "allowed": list(PERIOD_FORMATS)},
        )

    query = db.session.query(
        Order.confirmed_at,
        Order.final_amount,
        Order.order_status,
        Order.payment_status,
    ).filter(
        Order.order_status.in_(_fulfilled_values()),
        Order.confirmed_at.isnot(None),
    )
    query = _in_range(query, date_from, date_to)

    buckets: dict[str, dict] = {}
    for confirmed_at, amount, order_status, payment_status in query.order_by(Order.confirmed_at.desc()):
        period = confirmed_at.strftime(fmt)
        bucket = buckets.get(period)
        if bucket is None:
            if len(buckets) == MAX_PERIODS:
                break
            bucket = buckets[period] = {
                "total_orders": 0,
                "total_revenue": Decimal("0"),
                "paid_orders": 0,
                "completed_orders": 0,
            }
        bucket["total_orders"] += 1
        bucket["total_revenue"] += Decimal(str(amount))
        if payment_status == PaymentStatus.PAID.value:
            bucket["paid_orders"] += 1
        if order_status == OrderStatus.COMPLETED.value:
            bucket["completed_orders"] += 1

    rows = []
    for period, bucket in buckets.items():
        revenue = bucket["total_revenue"]
        rows.append({
            "period": period,
            "total_orders": bucket["total_orders"],
            "total_revenue": money(revenue),
            "avg_order_value": money((revenue / bucket["total_orders"]).quantize(CENTS, rounding=ROUND_HALF_UP)),
            "paid_orders": bucket["paid_orders"],
            "completed_orders": bucket["completed_orders"],
        })

    return {
        "group_by": group_by,
        "date_from": to_utc_z(date_from),
        "date_to": to_utc_z(date_to),
        "rows": rows,
    }


def top_products(
    *,
    limit=None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    """Best sellers by units sold in fulfilled orders."""
    if limit in (None, ""):
        limit = DEFAULT_TOP_LIMIT
    limit = min(coerce_positive_int(limit, "limit"), MAX_TOP_LIMIT)

    total_sold = func.sum(OrderItem.quantity).label("total_sold")
    query = db.session.query(
        Product.id,
        Product.sku,
        Product.name,
        total_sold,
        func.sum(OrderItem.total_price).label("total_revenue"),
        func.count(func.distinct(OrderItem.order_id)).label("total_orders"),
    ).join(
        OrderItem, OrderItem.product_id == Product.id
    ).join(
        Order, Order.id == OrderItem.order_id
    ).filter(
        Order.order_status.in_(_fulfilled_values()),
    )
    query = _in_range(query, date_from, date_to)

    rows = query.group_by(Product.id, Product.sku, Product.name).order_by(
        total_sold.desc(), Product.id.asc()
    ).limit(limit).all()

    return {
        "limit": limit,
        "date_from": to_utc_z(date_from),
        "date_to": to_utc_z(date_to),
        "products": [
            {
                "product_id": row.id,
                "sku": row.sku,
                "name": row.name,
                "total_sold": int(row.total_sold or 0),
                "total_revenue": money(Decimal(str(row.total_revenue or 0))),
                "total_orders": int(row.total_orders or 0),
            }
            for row in rows
        ],
    }
