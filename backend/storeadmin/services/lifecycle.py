# Overview: Status enums and transition tables for stock-in orders and sales orders.

"""
Document lifecycles (authoritative)

STOCK-IN ORDER:
    draft -> confirmed      increments stock, terminal
    draft -> cancelled      no stock effect, terminal

SALES ORDER (order_status):
    draft -> confirmed      deducts stock
    confirmed -> completed  no stock effect, terminal
    draft -> cancelled      no stock effect, terminal
    confirmed -> cancelled  restocks, terminal

SALES ORDER (payment_status):
    pending -> paid -> refunded

RULES:
1. Every status change goes through require_*_transition(); nothing else
   compares status strings to decide whether a write is allowed.
2. Re-requesting the current status is not a transition. A retried request
   that finds the document already moved fails instead of re-applying its
   stock effect.
3. An order counts against stock while its status is in FULFILLED_STATUSES.
"""

from __future__ import annotations

from enum import Enum

from ..errors import InvalidTransitionError, ValidationError


class StockInStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class StockEffect(str, Enum):
    NONE = "none"
    INCREMENT = "increment"
    DECREMENT = "decrement"


STOCK_IN_TRANSITIONS: dict[tuple[StockInStatus, StockInStatus], StockEffect] = {
    (StockInStatus.DRAFT, StockInStatus.CONFIRMED): StockEffect.INCREMENT,
    (StockInStatus.DRAFT, StockInStatus.CANCELLED): StockEffect.NONE,
}

ORDER_TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], StockEffect] = {
    (OrderStatus.DRAFT, OrderStatus.CONFIRMED): StockEffect.DECREMENT,
    (OrderStatus.CONFIRMED, OrderStatus.COMPLETED): StockEffect.NONE,
    (OrderStatus.DRAFT, OrderStatus.CANCELLED): StockEffect.NONE,
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): StockEffect.INCREMENT,
}

PAYMENT_TRANSITIONS: set[tuple[PaymentStatus, PaymentStatus]] = {
    (PaymentStatus.PENDING, PaymentStatus.PAID),
    (PaymentStatus.PAID, PaymentStatus.REFUNDED),
}

# Orders in these states have consumed stock.
FULFILLED_STATUSES = frozenset({OrderStatus.CONFIRMED, OrderStatus.COMPLETED})


def _coerce(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {allowed}",
            details={"field": field, "allowed": [m.value for m in enum_cls]},
        )


def parse_stock_in_status(value) -> StockInStatus:
    return _coerce(StockInStatus, value, "status")


def parse_order_status(value) -> OrderStatus:
    return _coerce(OrderStatus, value, "order_status")


def parse_payment_status(value) -> PaymentStatus:
    return _coerce(PaymentStatus, value, "payment_status")


def require_stock_in_transition(current: str, target: StockInStatus) -> StockEffect:
    """Return the stock effect of the transition or raise InvalidTransitionError."""
    key = (StockInStatus(current), target)
    if key not in STOCK_IN_TRANSITIONS:
        raise InvalidTransitionError(
            f"Cannot change stock-in order from {current} to {target.value}",
            details={"from": current, "to": target.value},
        )
    return STOCK_IN_TRANSITIONS[key]


def require_order_transition(current: str, target: OrderStatus) -> StockEffect:
    """Return the stock effect of the transition or raise InvalidTransitionError."""
    key = (OrderStatus(current), target)
    if key not in ORDER_TRANSITIONS:
        raise InvalidTransitionError(
            f"Cannot change order from {current} to {target.value}",
            details={"from": current, "to": target.value},
        )
    return ORDER_TRANSITIONS[key]


def require_payment_transition(current: str, target: PaymentStatus) -> None:
    if (PaymentStatus(current), target) not in PAYMENT_TRANSITIONS:
        raise InvalidTransitionError(
            f"Cannot change payment status from {current} to {target.value}",
            details={"from": current, "to": target.value},
        )


def is_fulfilled(order_status: str) -> bool:
    return OrderStatus(order_status) in FULFILLED_STATUSES
