# Overview: Read-only inventory views: current, point-in-time, low stock, history, reconciliation.

# backend/storeadmin/services/inventory_service.py
"""
Inventory Views & Time Semantics (authoritative)

Canonical time handling:
- All internal datetimes are UTC-naive (tzinfo=None).
- API accepts ISO-8601 with 'Z' or offsets, or a bare date meaning the end
  of that day; inputs are normalized to UTC-naive.

As-of semantics:
- All "as_of" filters are inclusive: occurred_at <= as_of.

Two sources of truth, one answer:
- Current views read Product.stock_quantity (the materialized counter).
- Point-in-time views replay the stock-in and sales ledgers
  (services/reconstruction.py) and never read the counter.
- Both label rows with services/classifier.classify(), so a dashboard and a
  historical report agree on what "low" means.
- reconcile() compares the two; any drift is a bug, never an expected state.

Nothing in this module writes or locks.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..errors import ValidationError
from ..extensions import db
from ..models import Product
from ..time_utils import to_utc_z, utcnow
from ..validation import coerce_int
from . import order_service, stock_in_service
from .catalog_service import get_product
from .classifier import STOCK_LEVELS, classify
from .pagination import paginate_list
from .reconstruction import (
    StockMovement,
    merge_movements,
    quantities_as_of,
    running_balance,
    stock_as_of,
)


def _label(quantity: int, product: Product) -> str:
    return classify(
        quantity,
        product.min_stock,
        product.max_stock,
        default_low=current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 10),
        default_high=current_app.config.get("DEFAULT_HIGH_STOCK_THRESHOLD", 50),
    )


def _products(search: str | None = None, category_id=None) -> list[Product]:
    q = db.session.query(Product).filter(Product.status != "deleted")
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.sku.ilike(like), Product.name.ilike(like)))
    if category_id not in (None, ""):
        q = q.filter(Product.category_id == coerce_int(category_id, "category_id"))
    return q.order_by(Product.id.asc()).all()


def _row(product: Product, quantity: int) -> dict:
    cost = product.cost_price or Decimal("0")
    return {
        "product_id": product.id,
        "sku": product.sku,
        "product_name": product.name,
        "category_id": product.category_id,
        "price": f"{product.price:.2f}",
        "cost_price": f"{cost:.2f}",
        "stock_quantity": quantity,
        "min_stock": product.min_stock,
        "max_stock": product.max_stock,
        "inventory_value": f"{(cost * quantity):.2f}",
        "stock_status": _label(quantity, product),
    }


def _summarize(rows: list[dict]) -> dict:
    counts = {f"{level}_count": 0 for level in STOCK_LEVELS}
    total_value = Decimal("0")
    for row in rows:
        counts[f"{row['stock_status']}_count"] += 1
        total_value += Decimal(row["inventory_value"])
    return {
        "total_products": len(rows),
        "total_quantity": sum(row["stock_quantity"] for row in rows),
        "total_inventory_value": f"{total_value:.2f}",
        **counts,
    }


def _validate_stock_status(stock_status: str | None) -> None:
    if stock_status and stock_status not in STOCK_LEVELS:
        raise ValidationError(
            f"stock_status must be one of: {', '.join(STOCK_LEVELS)}",
            details={"field": "stock_status"},
        )


def _view(rows: list[dict], *, page: int, per_page: int, stock_status: str | None) -> dict:
    summary = _summarize(rows)
    if stock_status:
        rows = [r for r in rows if r["stock_status"] == stock_status]
    rows.sort(key=lambda r: (r["stock_quantity"], r["product_id"]))
    page_rows, pagination = paginate_list(rows, page, per_page)
    return {"products": page_rows, "summary": summary, "pagination": pagination}


def current_inventory(
    *,
    page: int,
    per_page: int,
    search: str | None = None,
    category_id=None,
    stock_status: str | None = None,
) -> dict:
    """Live counters, labelled, lowest stock first. Summary ignores stock_status."""
    _validate_stock_status(stock_status)
    rows = [_row(p, p.stock_quantity) for p in _products(search, category_id)]
    return _view(rows, page=page, per_page=per_page, stock_status=stock_status)


def get_stock_as_of(as_of: datetime | None = None, product_id: int | None = None) -> list[dict]:
    """
    Reconstructed quantity and value per product as of a moment.

    as_of=None means now. Returns
    [{product_id, computed_quantity, computed_value}, ...].
    """
    if product_id is not None:
        products = [get_product(product_id)]
    else:
        products = db.session.query(Product).order_by(Product.id.asc()).all()

    cost_prices = {p.id: (p.cost_price or Decimal("0")) for p in products}
    positions = stock_as_of(
        stock_in_service.receipt_lines(product_id=product_id, until=as_of),
        order_service.sale_lines(product_id=product_id, until=as_of),
        as_of,
        cost_prices,
        product_id=product_id,
    )
    return [
        {
            "product_id": pos.product_id,
            "computed_quantity": pos.computed_quantity,
            "computed_value": f"{pos.computed_value:.2f}",
        }
        for pos in positions
    ]


def inventory_as_of(
    *,
    as_of: datetime,
    page: int,
    per_page: int,
    search: str | None = None,
    category_id=None,
    stock_status: str | None = None,
) -> dict:
    """Same shape as current_inventory(), computed from the ledgers."""
    _validate_stock_status(stock_status)
    products = _products(search, category_id)
    ids = [p.id for p in products]

    movements = merge_movements(
        stock_in_service.receipt_lines(until=as_of),
        order_service.sale_lines(until=as_of),
    )
    quantities = quantities_as_of(movements, as_of, ids)

    rows = [_row(p, quantities.get(p.id, 0)) for p in products]
    view = _view(rows, page=page, per_page=per_page, stock_status=stock_status)
    view["as_of"] = to_utc_z(as_of)
    return view


def low_stock(threshold: int | None = None) -> dict:
    """Products whose live counter is below threshold, scarcest first."""
    if threshold is None:
        threshold = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 10)
    if threshold < 0:
        raise ValidationError("threshold cannot be negative", details={"field": "threshold"})

    products = (
        db.session.query(Product)
        .filter(Product.status != "deleted", Product.stock_quantity < threshold)
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
    rows = [_row(p, p.stock_quantity) for p in products]
    return {"products": rows, "total": len(rows), "threshold": threshold}


def _movement_dict(movement: StockMovement, balance: int) -> dict:
    return {
        "type": movement.source,
        "quantity": movement.quantity_delta,
        "price": f"{movement.unit_amount:.2f}",
        "transaction_date": to_utc_z(movement.occurred_at),
        "reference_id": movement.document_id,
        "actor_id": movement.actor_id,
        "balance_after": balance,
    }


def product_history(
    product_id: int,
    *,
    page: int,
    per_page: int,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    """
    Every stock movement of one product, newest first, with the balance after
    each movement. Balances are computed over the full history before the
    date window is applied.
    """
    product = get_product(product_id)
    movements = merge_movements(
        stock_in_service.receipt_lines(product_id=product_id),
        order_service.sale_lines(product_id=product_id),
    )
    entries = [
        (m, balance)
        for m, balance in running_balance(movements)
        if (date_from is None or m.occurred_at >= date_from)
        and (date_to is None or m.occurred_at <= date_to)
    ]
    entries.reverse()
    page_entries, pagination = paginate_list(entries, page, per_page)
    return {
        "product": {
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "stock_quantity": product.stock_quantity,
        },
        "transactions": [_movement_dict(m, balance) for m, balance in page_entries],
        "pagination": pagination,
    }


def reconcile() -> dict:
    """
    Compare every product's live counter with the ledger replay at now.

    Meant to run when no writes are in flight (CLI, audits). Drift is logged.
    """
    as_of = utcnow()
    products = db.session.query(Product).order_by(Product.id.asc()).all()
    movements = merge_movements(
        stock_in_service.receipt_lines(),
        order_service.sale_lines(),
    )
    computed = quantities_as_of(movements, None, [p.id for p in products])

    drift = []
    for p in products:
        if computed[p.id] != p.stock_quantity:
            drift.append({
                "product_id": p.id,
                "sku": p.sku,
                "stock_quantity": p.stock_quantity,
                "computed_quantity": computed[p.id],
                "difference": p.stock_quantity - computed[p.id],
            })

    if drift:
        current_app.logger.error("Inventory drift detected for %s product(s): %s", len(drift), drift)

    return {
        "checked_at": to_utc_z(as_of),
        "products_checked": len(products),
        "consistent": not drift,
        "drift": drift,
    }
