# Overview: Fulfillment coordinator: the only code path that mutates product stock.

"""
Fulfillment Coordinator

Executes the mutating ledger operations against the product catalog:

    create_order              draft order, availability checked, no stock effect
    update_order_status       draft->confirmed deducts, confirmed->cancelled restocks
    create_stock_in_order     draft receipt, no stock effect
    confirm_stock_in_order    draft->confirmed increments
    cancel_stock_in_order     draft->cancelled, no stock effect

TRANSACTION PROTOCOL (every status change):
1. begin_write() and lock the document row; re-read its current status.
2. Look the transition up in services/lifecycle.py. Anything not in the
   table raises InvalidTransitionError, so a retried request that finds the
   document already moved cannot apply its stock effect twice.
3. Lock every product on the document in ascending id order, re-validate
   that no counter would go negative, then write all counters.
4. Write the status and commit once. Any error rolls everything back.

Products and documents carry version_id columns; a lost optimistic race is
retried by run_with_retry and reported as ConflictError if it persists.
"""

from __future__ import annotations

from collections import OrderedDict

from flask import current_app

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Order, StockInOrder
from ..time_utils import utcnow
from ..validation import parse_order_lines, parse_stock_in_lines
from . import order_service, stock_in_service
from .catalog_service import apply_stock_delta, get_product, lock_products, require_sellable
from .concurrency import begin_write, lock_for_update, run_with_retry
from .lifecycle import (
    OrderStatus,
    StockEffect,
    StockInStatus,
    parse_order_status,
    parse_payment_status,
    parse_stock_in_status,
    require_order_transition,
    require_payment_transition,
    require_stock_in_transition,
)
from .parties_service import require_supplier, resolve_customer


def _quantities_by_product(lines) -> "OrderedDict[int, int]":
    totals: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def _clean_note(note) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    if len(note) > 255:
        raise ValidationError("note must be at most 255 characters", details={"field": "note"})
    return note or None


def _shortages(products, quantities) -> list[dict]:
    short = []
    for product_id, qty in quantities.items():
        on_hand = products[product_id].stock_quantity
        if on_hand < qty:
            short.append({
                "product_id": product_id,
                "name": products[product_id].name,
                "requested_quantity": qty,
                "available_quantity": on_hand,
            })
    return short


def _apply_stock(quantities: dict[int, int], effect: StockEffect) -> None:
    """Lock, re-validate and write every counter for one document."""
    if effect == StockEffect.NONE or not quantities:
        return

    products = lock_products(quantities.keys())

    if effect == StockEffect.DECREMENT:
        short = _shortages(products, quantities)
        if short:
            current_app.logger.warning("Stock conflict: %s", short)
            raise ConflictError("Insufficient stock", details={"items": short})
        sign = -1
    else:
        sign = 1

    for product_id in sorted(quantities):
        apply_stock_delta(products[product_id], sign * quantities[product_id])


# ---------------------------------------------------------------------------
# Sales orders
# ---------------------------------------------------------------------------


def create_order(*, created_by: int, items, customer_id=None, note=None) -> Order:
    """
    Create a draft order priced from the catalog.

    Requested quantities (summed per product) must fit the live counter at
    the time of the call. Nothing is reserved: the binding check happens
    again under lock when the order is confirmed.
    """
    lines = parse_order_lines(items)
    note = _clean_note(note)
    requested = _quantities_by_product(lines)

    def _op():
        customer = resolve_customer(customer_id)
        products = {pid: require_sellable(get_product(pid)) for pid in requested}

        short = _shortages(products, requested)
        if short:
            raise ConflictError("Insufficient stock", details={"items": short})

        order = order_service.record_order(
            customer=customer,
            created_by=created_by,
            lines=lines,
            products=products,
            note=note,
        )
        db.session.commit()
        current_app.logger.info(
            "Order %s created by user %s (%s lines, total %s)",
            order.id, created_by, len(lines), order.final_amount,
        )
        return order

    return run_with_retry(_op)


def update_order_status(
    order_id: int,
    *,
    actor_id: int,
    order_status=None,
    payment_status=None,
    note=None,
) -> Order:
    """
    Move an order and/or its payment through their lifecycles.

    Entering confirmed deducts every line; confirmed -> cancelled restocks
    every line. Both happen in the same commit as the status write.
    """
    if order_status in (None, "") and payment_status in (None, ""):
        raise ValidationError("order_status or payment_status is required")

    target = parse_order_status(order_status) if order_status not in (None, "") else None
    pay_target = parse_payment_status(payment_status) if payment_status not in (None, "") else None
    note = _clean_note(note)

    def _op():
        begin_write()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            order_service.get_order(order_id)  # raises NotFoundError

        effect = StockEffect.NONE
        if target is not None:
            effect = require_order_transition(order.order_status, target)
        if pay_target is not None:
            require_payment_transition(order.payment_status, pay_target)

        _apply_stock(_quantities_by_product(order.items), effect)

        now = utcnow()
        if target is not None:
            previous = order.order_status
            order.order_status = target.value
            if target == OrderStatus.CONFIRMED:
                order.confirmed_at = now
            elif target == OrderStatus.COMPLETED:
                order.completed_at = now
            elif target == OrderStatus.CANCELLED:
                order.cancelled_at = now
        if pay_target is not None:
            order.payment_status = pay_target.value
        if note is not None:
            order.note = note
        order.updated_by = actor_id

        db.session.commit()

        if target is not None:
            current_app.logger.info(
                "Order %s %s -> %s by user %s (stock %s)",
                order.id, previous, target.value, actor_id, effect.value,
            )
        return order

    return run_with_retry(_op)


def cancel_order(order_id: int, *, actor_id: int, note=None) -> Order:
    return update_order_status(
        order_id, actor_id=actor_id, order_status=OrderStatus.CANCELLED.value, note=note
    )


# ---------------------------------------------------------------------------
# Stock-in orders
# ---------------------------------------------------------------------------


def create_stock_in_order(*, created_by: int, supplier_id, items, note=None) -> StockInOrder:
    """Create a draft receipt. Stock is untouched until confirmation."""
    lines = parse_stock_in_lines(items)
    note = _clean_note(note)

    def _op():
        supplier = require_supplier(supplier_id)
        for product_id in _quantities_by_product(lines):
            require_sellable(get_product(product_id))

        doc = stock_in_service.record_stock_in_order(
            supplier=supplier,
            created_by=created_by,
            lines=lines,
            note=note,
        )
        db.session.commit()
        current_app.logger.info(
            "Stock-in order %s created by user %s (%s lines, total %s)",
            doc.id, created_by, len(lines), doc.total_amount,
        )
        return doc

    return run_with_retry(_op)


def _transition_stock_in(stock_in_order_id: int, target: StockInStatus, actor_id: int) -> StockInOrder:
    def _op():
        begin_write()
        doc = lock_for_update(
            db.session.query(StockInOrder).filter_by(id=stock_in_order_id)
        ).first()
        if doc is None:
            stock_in_service.get_stock_in_order(stock_in_order_id)  # raises NotFoundError

        effect = require_stock_in_transition(doc.status, target)
        _apply_stock(_quantities_by_product(doc.items), effect)

        now = utcnow()
        doc.status = target.value
        if target == StockInStatus.CONFIRMED:
            doc.confirmed_at = now
            doc.confirmed_by = actor_id
        else:
            doc.cancelled_at = now
            doc.cancelled_by = actor_id

        db.session.commit()
        current_app.logger.info(
            "Stock-in order %s -> %s by user %s (stock %s)",
            doc.id, target.value, actor_id, effect.value,
        )
        return doc

    return run_with_retry(_op)


def confirm_stock_in_order(stock_in_order_id: int, *, actor_id: int) -> StockInOrder:
    return _transition_stock_in(stock_in_order_id, StockInStatus.CONFIRMED, actor_id)


def cancel_stock_in_order(stock_in_order_id: int, *, actor_id: int) -> StockInOrder:
    return _transition_stock_in(stock_in_order_id, StockInStatus.CANCELLED, actor_id)


def update_stock_in_status(stock_in_order_id: int, status, *, actor_id: int) -> StockInOrder:
    if status in (None, ""):
        raise ValidationError("status is required", details={"field": "status"})
    return _transition_stock_in(stock_in_order_id, parse_stock_in_status(status), actor_id)
