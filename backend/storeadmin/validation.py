from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError
from .time_utils import parse_as_of, parse_iso_datetime


# Maximum money value accepted on input: 9,999,999,999.99
MAX_MONEY = Decimal("9999999999.99")
CENTS = Decimal("0.01")

# Largest value an INTEGER column (SQLite, PostgreSQL BIGINT) can hold
MAX_DB_INT = 2**63 - 1


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Rejects bools, floats, decimals in strings and scientific notation, so
    "2.5" or 1e3 never silently become a quantity. Values outside the signed
    64-bit range are rejected before they reach the database driver.
    """
    number = _parse_int(value, field)
    if not -MAX_DB_INT - 1 <= number <= MAX_DB_INT:
        raise ValidationError(f"{field} is out of range", details={"field": field})
    return number


def _parse_int(value: Any, field: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", details={"field": field})
    raise ValidationError(f"{field} must be an integer", details={"field": field})


def coerce_positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be greater than 0", details={"field": field})
    return number


def coerce_optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def coerce_money(value: Any, field: str) -> Decimal:
    """Non-negative amount rounded half-up to cents."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", details={"field": field})
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", details={"field": field})
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} is too large", details={"field": field})
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_amount: Decimal) -> Decimal:
    return (unit_amount * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderLineInput:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class StockInLineInput:
    product_id: int
    quantity: int
    unit_cost: Decimal


def _require_item_list(items: Any) -> list:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list", details={"field": "items"})
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(
                f"items[{index}] must be an object", details={"field": f"items[{index}]"}
            )
        if item.get("product_id") in (None, ""):
            raise ValidationError(
                f"items[{index}].product_id is required",
                details={"field": f"items[{index}].product_id"},
            )
    return items


def parse_order_lines(items: Any) -> list[OrderLineInput]:
    """
    Validate order lines. Any price the caller sends is ignored: unit prices
    come from the catalog at creation time.
    """
    lines = []
    for index, item in enumerate(_require_item_list(items)):
        lines.append(
            OrderLineInput(
                product_id=coerce_positive_int(item["product_id"], f"items[{index}].product_id"),
                quantity=coerce_positive_int(item.get("quantity"), f"items[{index}].quantity"),
            )
        )
    return lines


def parse_stock_in_lines(items: Any) -> list[StockInLineInput]:
    lines = []
    for index, item in enumerate(_require_item_list(items)):
        lines.append(
            StockInLineInput(
                product_id=coerce_positive_int(item["product_id"], f"items[{index}].product_id"),
                quantity=coerce_positive_int(item.get("quantity"), f"items[{index}].quantity"),
                unit_cost=coerce_money(item.get("unit_cost"), f"items[{index}].unit_cost"),
            )
        )
    return lines


def parse_json_object(payload: Any) -> dict:
    """Request body as a dict. A missing or unparseable body counts as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def parse_page_args(args, *, default_per_page: int = 20, max_per_page: int = 100) -> tuple[int, int]:
    """Read ?page=&limit= from a request's args; clamps instead of failing."""
    page = args.get("page", 1, type=int) or 1
    per_page = args.get("limit", default_per_page, type=int) or default_per_page
    per_page = min(max(per_page, 1), max_per_page)
    page = min(max(page, 1), MAX_DB_INT // per_page)
    return page, per_page


def parse_datetime_arg(args, name: str):
    """
    Read an optional ISO-8601 datetime (or bare date) query argument.

    A bare date used as an upper bound ("date_to", "date", "as_of") covers
    the whole day.
    """
    raw = args.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        if name in ("date_to", "date", "as_of"):
            return parse_as_of(raw)
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(
            f"{name} must be an ISO-8601 date or datetime", details={"field": name}
        )


def parse_optional_int_arg(args, name: str) -> int | None:
    return coerce_optional_int(args.get(name), name)
