"""Stock level labelling tests."""

import pytest

from storeadmin.services.classifier import (
    HIGH,
    LOW,
    NORMAL,
    OUT_OF_STOCK,
    classify,
    level_rank,
)


@pytest.mark.parametrize(
    "quantity,expected",
    [
        (-3, OUT_OF_STOCK),
        (0, OUT_OF_STOCK),
        (1, LOW),
        (9, LOW),
        (10, NORMAL),
        (49, NORMAL),
        (50, HIGH),
        (500, HIGH),
    ],
)
def test_default_thresholds(quantity, expected):
    assert classify(quantity) == expected


def test_product_thresholds_override_defaults():
    assert classify(4, min_stock=5, max_stock=8) == LOW
    assert classify(5, min_stock=5, max_stock=8) == NORMAL
    assert classify(8, min_stock=5, max_stock=8) == HIGH


def test_configured_defaults():
    assert classify(15, default_low=20, default_high=100) == LOW
    assert classify(100, default_low=20, default_high=100) == HIGH


@pytest.mark.parametrize(
    "min_stock,max_stock",
    [(None, None), (5, 8), (0, 0), (10, 3), (1, 1), (None, 2)],
)
def test_monotonic_in_quantity(min_stock, max_stock):
    ranks = [level_rank(classify(q, min_stock, max_stock)) for q in range(-2, 120)]
    assert ranks == sorted(ranks)
