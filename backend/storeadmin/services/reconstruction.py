# Overview: Point-in-time stock reconstruction as pure functions over ledger lines.

"""
Inventory reconstruction (authoritative)

Inputs are two ordered logs of plain records, one per ledger:
- receipt lines: one per StockInItem, stamped with its order's status and
  confirmed_at
- sale lines: one per OrderItem, stamped with its order's status,
  confirmed_at and cancelled_at

Each line turns into zero, one or two stock movements:
- receipt line of a confirmed stock-in    -> +quantity at confirmed_at
- sale line of an order that was confirmed -> -quantity at confirmed_at
- ...and that was cancelled afterwards     -> +quantity at cancelled_at

Draft lines and lines cancelled before confirmation produce nothing. A
movement is included in an as-of query when occurred_at <= as_of (inclusive).

Because movements are stamped at the instant the live counter changed, the
running sum per product equals Product.stock_quantity at every point in time,
and at "now" it equals the live counter exactly.

Nothing here touches the database; services feed records in.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Iterator

from .lifecycle import OrderStatus, StockInStatus

SOURCE_STOCK_IN = "stock_in"
SOURCE_SALE = "sale"
SOURCE_SALE_REVERSAL = "sale_reversal"

# Same-instant tie-break: receipts first, then reversals, then sales.
_SOURCE_ORDER = {SOURCE_STOCK_IN: 0, SOURCE_SALE_REVERSAL: 1, SOURCE_SALE: 2}


@dataclass(frozen=True)
class LedgerLine:
    document_id: int
    product_id: int
    quantity: int
    unit_amount: Decimal
    status: str
    created_at: datetime
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    actor_id: int | None = None


@dataclass(frozen=True)
class StockMovement:
    product_id: int
    quantity_delta: int
    occurred_at: datetime
    source: str
    document_id: int
    unit_amount: Decimal
    actor_id: int | None = None

    def sort_key(self):
        return (self.occurred_at, _SOURCE_ORDER[self.source], self.document_id)


@dataclass(frozen=True)
class StockPosition:
    product_id: int
    computed_quantity: int
    computed_value: Decimal


def receipt_movements(lines: Iterable[LedgerLine]) -> Iterator[StockMovement]:
    for line in lines:
        if line.status != StockInStatus.CONFIRMED.value or line.confirmed_at is None:
            continue
        yield StockMovement(
            product_id=line.product_id,
            quantity_delta=line.quantity,
            occurred_at=line.confirmed_at,
            source=SOURCE_STOCK_IN,
            document_id=line.document_id,
            unit_amount=line.unit_amount,
            actor_id=line.actor_id,
        )


def sale_movements(lines: Iterable[LedgerLine]) -> Iterator[StockMovement]:
    for line in lines:
        if line.confirmed_at is None:
            # never counted as fulfilled: draft, or cancelled from draft
            continue
        yield StockMovement(
            product_id=line.product_id,
            quantity_delta=-line.quantity,
            occurred_at=line.confirmed_at,
            source=SOURCE_SALE,
            document_id=line.document_id,
            unit_amount=line.unit_amount,
            actor_id=line.actor_id,
        )
        if line.status == OrderStatus.CANCELLED.value and line.cancelled_at is not None:
            yield StockMovement(
                product_id=line.product_id,
                quantity_delta=line.quantity,
                occurred_at=line.cancelled_at,
                source=SOURCE_SALE_REVERSAL,
                document_id=line.document_id,
                unit_amount=line.unit_amount,
                actor_id=line.actor_id,
            )


def merge_movements(
    receipts: Iterable[LedgerLine], sales: Iterable[LedgerLine]
) -> list[StockMovement]:
    """Both ledgers as one chronologically ordered movement log."""
    movements = list(receipt_movements(receipts))
    movements.extend(sale_movements(sales))
    movements.sort(key=StockMovement.sort_key)
    return movements


def quantities_as_of(
    movements: Iterable[StockMovement],
    as_of: datetime | None = None,
    product_ids: Iterable[int] | None = None,
) -> dict[int, int]:
    """
    Sum movement deltas per product up to and including as_of.

    as_of=None means "everything recorded so far". Products listed in
    product_ids but without movements report 0.
    """
    wanted = set(product_ids) if product_ids is not None else None
    totals: dict[int, int] = defaultdict(int)
    if wanted is not None:
        for product_id in wanted:
            totals[product_id] = 0

    for movement in movements:
        if wanted is not None and movement.product_id not in wanted:
            continue
        if as_of is not None and movement.occurred_at > as_of:
            continue
        totals[movement.product_id] += movement.quantity_delta
    return dict(totals)


def stock_as_of(
    receipts: Iterable[LedgerLine],
    sales: Iterable[LedgerLine],
    as_of: datetime | None,
    cost_prices: dict[int, Decimal],
    product_id: int | None = None,
) -> list[StockPosition]:
    """
    Reconstructed stock per product as of a moment.

    cost_prices lists the products to report (and values quantities at
    their cost price); product_id narrows it to one product.
    """
    product_ids = [product_id] if product_id is not None else list(cost_prices)
    movements = merge_movements(receipts, sales)
    quantities = quantities_as_of(movements, as_of, product_ids)

    positions = []
    for pid in sorted(quantities):
        qty = quantities[pid]
        cost = cost_prices.get(pid, Decimal("0"))
        positions.append(
            StockPosition(
                product_id=pid,
                computed_quantity=qty,
                computed_value=(cost * qty).quantize(Decimal("0.01")),
            )
        )
    return positions


def running_balance(movements: Iterable[StockMovement]) -> list[tuple[StockMovement, int]]:
    """Pair each movement (already ordered) with the balance right after it."""
    balance = 0
    out = []
    for movement in movements:
        balance += movement.quantity_delta
        out.append((movement, balance))
    return out
