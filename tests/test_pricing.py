"""
Unit tests for order pricing and order-number generation.
"""

import re
from decimal import Decimal

import pytest

from app.services.order_service import _to_base36, compute_totals, generate_order_number


@pytest.mark.parametrize(
    "subtotal, tax, fee, total",
    [
        ("500.00", "40.00", "0.00", "540.00"),
        ("499.99", "40.00", "9.99", "549.98"),
        ("0.01", "0.00", "9.99", "10.00"),
        ("1234.56", "98.76", "0.00", "1333.32"),
    ],
)
def test_compute_totals(subtotal, tax, fee, total):
    totals = compute_totals(Decimal(subtotal))
    assert totals.subtotal == Decimal(subtotal)
    assert totals.tax == Decimal(tax)
    assert totals.shipping_fee == Decimal(fee)
    assert totals.total == Decimal(total)


def test_compute_totals_is_deterministic():
    assert compute_totals(Decimal("123.45")) == compute_totals(Decimal("123.45"))


def test_order_number_format():
    number = generate_order_number()
    assert re.fullmatch(r"ORD-[0-9A-Z]+-[0-9A-Z]{4}", number)


def test_order_numbers_vary():
    assert len({generate_order_number() for _ in range(50)}) > 1


def test_base36():
    assert _to_base36(0) == "0"
    assert _to_base36(35) == "Z"
    assert _to_base36(36) == "10"
