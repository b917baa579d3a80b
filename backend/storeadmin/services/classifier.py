# Overview: Stock level labelling shared by live and point-in-time inventory views.

from __future__ import annotations

OUT_OF_STOCK = "out_of_stock"
LOW = "low"
NORMAL = "normal"
HIGH = "high"

# Ordered from scarcest to most plentiful.
STOCK_LEVELS = (OUT_OF_STOCK, LOW, NORMAL, HIGH)

DEFAULT_LOW_THRESHOLD = 10
DEFAULT_HIGH_THRESHOLD = 50


def classify(
    quantity: int,
    min_stock: int | None = None,
    max_stock: int | None = None,
    *,
    default_low: int = DEFAULT_LOW_THRESHOLD,
    default_high: int = DEFAULT_HIGH_THRESHOLD,
) -> str:
    """
    Map a quantity to out_of_stock / low / normal / high.

    Missing thresholds fall back to default_low / default_high. The result
    never moves to a scarcer label when quantity grows, even for odd
    thresholds (max_stock <= min_stock): the high check wins once reached.
    """
    low = default_low if min_stock is None else min_stock
    high = default_high if max_stock is None else max_stock

    if quantity <= 0:
        return OUT_OF_STOCK
    if quantity >= high:
        return HIGH
    if quantity < low:
        return LOW
    return NORMAL


def level_rank(label: str) -> int:
    """Position of a label in STOCK_LEVELS (0 = scarcest)."""
    return STOCK_LEVELS.index(label)
