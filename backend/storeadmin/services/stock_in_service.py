# Overview: Stock-in ledger: recording receipts, lookups, listings and receipt lines for replay.

"""
Stock-In Ledger

Append-only record of receiving documents. Rows are written here (header
and all items in one flush) and status changes are applied by the
fulfillment service; nothing in this module changes product stock.

LIFECYCLE: see services/lifecycle.py (draft -> confirmed | cancelled).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..errors import NotFoundError
from ..extensions import db
from ..models import StockInItem, StockInOrder, Supplier
from ..validation import StockInLineInput, coerce_int, line_total
from .lifecycle import StockInStatus
from .pagination import paginate
from .reconstruction import LedgerLine


def get_stock_in_order(stock_in_order_id: int) -> StockInOrder:
    doc = db.session.get(StockInOrder, stock_in_order_id)
    if doc is None:
        raise NotFoundError(
            f"Stock-in order {stock_in_order_id} not found",
            details={"stock_in_order_id": stock_in_order_id},
        )
    return doc


def record_stock_in_order(
    *,
    supplier: Supplier,
    created_by: int,
    lines: list[StockInLineInput],
    note: str | None = None,
) -> StockInOrder:
    """Stage a draft stock-in order with its items. Caller commits."""
    doc = StockInOrder(
        supplier_id=supplier.id,
        status=StockInStatus.DRAFT.value,
        note=note,
        created_by=created_by,
    )
    db.session.add(doc)
    db.session.flush()

    total = Decimal("0.00")
    for line in lines:
        line_cost = line_total(line.quantity, line.unit_cost)
        total += line_cost
        db.session.add(
            StockInItem(
                stock_in_order_id=doc.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_cost=line.unit_cost,
                total_price=line_cost,
            )
        )
    doc.total_amount = total
    db.session.flush()
    return doc


def list_stock_in_orders(
    *,
    page: int,
    per_page: int,
    status: str | None = None,
    supplier_id: int | None = None,
    search: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    q = db.session.query(StockInOrder)
    if status:
        q = q.filter(StockInOrder.status == status)
    if supplier_id is not None:
        q = q.filter(StockInOrder.supplier_id == supplier_id)
    if search and search.strip():
        term = search.strip()
        if term.isdigit():
            q = q.filter(StockInOrder.id == coerce_int(term, "search"))
        else:
            q = q.join(Supplier).filter(Supplier.name.ilike(f"%{term}%"))
    if date_from is not None:
        q = q.filter(StockInOrder.created_at >= date_from)
    if date_to is not None:
        q = q.filter(StockInOrder.created_at <= date_to)

    q = q.order_by(StockInOrder.created_at.desc(), StockInOrder.id.desc())
    rows, pagination = paginate(q, page, per_page)
    return {"items": [d.to_dict() for d in rows], "pagination": pagination}


def stock_in_stats(date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    q = db.session.query(
        StockInOrder.status,
        func.count(StockInOrder.id),
        func.coalesce(func.sum(StockInOrder.total_amount), 0),
    )
    if date_from is not None:
        q = q.filter(StockInOrder.created_at >= date_from)
    if date_to is not None:
        q = q.filter(StockInOrder.created_at <= date_to)

    by_status = {s.value: 0 for s in StockInStatus}
    confirmed_amount = Decimal("0")
    for status, count, amount in q.group_by(StockInOrder.status).all():
        by_status[status] = count
        if status == StockInStatus.CONFIRMED.value:
            confirmed_amount = Decimal(str(amount))

    units_q = (
        db.session.query(func.coalesce(func.sum(StockInItem.quantity), 0))
        .join(StockInOrder, StockInItem.stock_in_order_id == StockInOrder.id)
        .filter(StockInOrder.status == StockInStatus.CONFIRMED.value)
    )
    if date_from is not None:
        units_q = units_q.filter(StockInOrder.created_at >= date_from)
    if date_to is not None:
        units_q = units_q.filter(StockInOrder.created_at <= date_to)

    return {
        "total_orders": sum(by_status.values()),
        "by_status": by_status,
        "confirmed_total_amount": f"{confirmed_amount:.2f}",
        "confirmed_units": int(units_q.scalar() or 0),
    }


def receipt_lines(
    *, product_id: int | None = None, until: datetime | None = None
) -> list[LedgerLine]:
    """
    Stock-in items that took stock effect (confirmed), as replay records.

    until bounds confirmed_at inclusively; the reconstructor applies the
    same bound again, so passing it is only a query-size optimisation.
    """
    q = (
        db.session.query(StockInItem, StockInOrder)
        .join(StockInOrder, StockInItem.stock_in_order_id == StockInOrder.id)
        .filter(
            StockInOrder.status == StockInStatus.CONFIRMED.value,
            StockInOrder.confirmed_at.isnot(None),
        )
    )
    if product_id is not None:
        q = q.filter(StockInItem.product_id == product_id)
    if until is not None:
        q = q.filter(StockInOrder.confirmed_at <= until)

    q = q.order_by(StockInOrder.confirmed_at.asc(), StockInItem.id.asc())
    return [
        LedgerLine(
            document_id=doc.id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_amount=item.unit_cost,
            status=doc.status,
            created_at=doc.created_at,
            confirmed_at=doc.confirmed_at,
            cancelled_at=doc.cancelled_at,
            actor_id=doc.confirmed_by,
        )
        for item, doc in q.all()
    ]
