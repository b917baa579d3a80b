# Overview: Sales ledger: recording orders, lookups, listings, stats and sale lines for replay.

"""
Sales Ledger

Append-only record of sales orders. An order and all of its items are
staged together; items are never edited afterwards. Status changes are
applied by the fulfillment service, which is also the only caller that
moves stock.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer, Order, OrderItem, Product
from ..validation import OrderLineInput, coerce_int, line_total
from .lifecycle import FULFILLED_STATUSES, OrderStatus, PaymentStatus
from .pagination import paginate
from .reconstruction import LedgerLine


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def record_order(
    *,
    customer: Customer | None,
    created_by: int,
    lines: list[OrderLineInput],
    products: dict[int, Product],
    note: str | None = None,
) -> Order:
    """
    Stage a draft order with its items. Caller commits.

    unit_price is copied from the product row handed in, never from input.
    """
    order = Order(
        customer_id=customer.id if customer else None,
        order_status=OrderStatus.DRAFT.value,
        payment_status=PaymentStatus.PENDING.value,
        note=note,
        created_by=created_by,
    )
    db.session.add(order)
    db.session.flush()

    total = Decimal("0.00")
    for line in lines:
        unit_price = products[line.product_id].price
        amount = line_total(line.quantity, unit_price)
        total += amount
        db.session.add(
            OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=unit_price,
                total_price=amount,
            )
        )
    order.final_amount = total
    db.session.flush()
    return order


def _apply_filters(q, *, order_status, payment_status, customer_id, search, date_from, date_to):
    if order_status:
        q = q.filter(Order.order_status == order_status)
    if payment_status:
        q = q.filter(Order.payment_status == payment_status)
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    if search and search.strip():
        term = search.strip()
        if term.isdigit():
            q = q.filter(Order.id == coerce_int(term, "search"))
        else:
            q = q.outerjoin(Customer).filter(
                Customer.name.ilike(f"%{term}%") | Order.note.ilike(f"%{term}%")
            )
    if date_from is not None:
        q = q.filter(Order.created_at >= date_from)
    if date_to is not None:
        q = q.filter(Order.created_at <= date_to)
    return q


def list_orders(
    *,
    page: int,
    per_page: int,
    order_status: str | None = None,
    payment_status: str | None = None,
    customer_id: int | None = None,
    search: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    q = _apply_filters(
        db.session.query(Order),
        order_status=order_status,
        payment_status=payment_status,
        customer_id=customer_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    rows, pagination = paginate(q, page, per_page)
    return {"items": [o.to_dict() for o in rows], "pagination": pagination}


def order_stats(date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    base = db.session.query(
        Order.order_status,
        func.count(Order.id),
        func.coalesce(func.sum(Order.final_amount), 0),
    )
    base = _apply_filters(
        base,
        order_status=None,
        payment_status=None,
        customer_id=None,
        search=None,
        date_from=date_from,
        date_to=date_to,
    )

    by_status = {s.value: 0 for s in OrderStatus}
    revenue = Decimal("0")
    fulfilled = {s.value for s in FULFILLED_STATUSES}
    for status, count, amount in base.group_by(Order.order_status).all():
        by_status[status] = count
        if status in fulfilled:
            revenue += Decimal(str(amount))

    payments = _apply_filters(
        db.session.query(Order.payment_status, func.count(Order.id)),
        order_status=None,
        payment_status=None,
        customer_id=None,
        search=None,
        date_from=date_from,
        date_to=date_to,
    ).group_by(Order.payment_status).all()

    by_payment = {s.value: 0 for s in PaymentStatus}
    for status, count in payments:
        by_payment[status] = count

    fulfilled_count = sum(by_status[s] for s in fulfilled)
    return {
        "total_orders": sum(by_status.values()),
        "by_status": by_status,
        "by_payment_status": by_payment,
        "fulfilled_orders": fulfilled_count,
        "fulfilled_revenue": f"{revenue:.2f}",
        "average_order_value": f"{(revenue / fulfilled_count):.2f}" if fulfilled_count else "0.00",
    }


def sale_lines(
    *, product_id: int | None = None, until: datetime | None = None
) -> list[LedgerLine]:
    """
    Order items that were ever counted as fulfilled, as replay records.

    Orders cancelled from draft never took stock and are skipped; orders
    cancelled after confirmation are kept so their reversal replays too.
    """
    q = (
        db.session.query(OrderItem, Order)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Order.confirmed_at.isnot(None))
    )
    if product_id is not None:
        q = q.filter(OrderItem.product_id == product_id)
    if until is not None:
        q = q.filter(Order.confirmed_at <= until)

    q = q.order_by(Order.confirmed_at.asc(), OrderItem.id.asc())
    return [
        LedgerLine(
            document_id=order.id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_amount=item.unit_price,
            status=order.order_status,
            created_at=order.created_at,
            confirmed_at=order.confirmed_at,
            cancelled_at=order.cancelled_at,
            actor_id=order.created_by,
        )
        for item, order in q.all()
    ]
