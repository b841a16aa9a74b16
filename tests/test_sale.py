"""
Tests for `domain/sale.py`.

Covers contract rules:
- A sale request has at least one line with positive quantity and price.
- The total is the sum of quantity x unit price, whatever the caller declares.
- Payment methods accept the spellings tills actually send.
- Sale.created_at is a UTC timestamp and Sale is immutable.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.errors import ValidationError
from domain.sale import PaymentMethod, Sale, SaleLineItem, SaleRequest, compute_total


def _line(item: str = "item-a", quantity="1", unit_price="5.00") -> dict:
    return {"stock_item_id": item, "quantity": quantity, "unit_price": unit_price}


def test_sale_request_requires_lines() -> None:
    with pytest.raises(ValidationError) as exc_info:
        SaleRequest.create(lines=[], payment_method="cash")
    assert exc_info.value.field == "lines"


@pytest.mark.parametrize(
    "line, field",
    [
        (_line(quantity="0"), "lines[0].quantity"),
        (_line(quantity="-2"), "lines[0].quantity"),
        (_line(unit_price="0"), "lines[0].unit_price"),
        (_line(quantity="two"), "lines[0].quantity"),
        ({"quantity": "1", "unit_price": "1"}, "lines[0].stock_item_id"),
        ({"stock_item_id": "x", "unit_price": "1"}, "lines[0].quantity"),
    ],
)
def test_sale_request_rejects_bad_lines(line: dict, field: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        SaleRequest.create(lines=[line], payment_method="cash")
    assert exc_info.value.field == field


def test_sale_request_rejects_unknown_payment_method() -> None:
    with pytest.raises(ValidationError) as exc_info:
        SaleRequest.create(lines=[_line()], payment_method="barter")
    assert exc_info.value.field == "payment_method"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("cash", PaymentMethod.CASH),
        ("CASH", PaymentMethod.CASH),
        ("MPESA", PaymentMethod.MOBILE_MONEY),
        ("m-pesa", PaymentMethod.MOBILE_MONEY),
        ("bank-transfer", PaymentMethod.BANK_TRANSFER),
        ("Credit", PaymentMethod.CREDIT),
    ],
)
def test_payment_method_aliases(raw: str, expected: PaymentMethod) -> None:
    assert PaymentMethod(raw) is expected


def test_total_is_computed_from_lines_not_declared() -> None:
    request = SaleRequest.create(
        lines=[_line("a", "2", "5.00"), _line("b", "1", "10.00")],
        payment_method="cash",
        declared_total="999",
    )

    assert request.total == Decimal("20.00")
    assert request.declared_total == Decimal("999")


def test_demand_aggregates_repeated_items() -> None:
    request = SaleRequest.create(
        lines=[_line("a", "2"), _line("b", "1"), _line("a", "3")],
        payment_method="cash",
    )

    assert request.demand_by_item() == {"a": Decimal("5"), "b": Decimal("1")}
    assert len(request.lines) == 3


def test_blank_optional_fields_become_none() -> None:
    request = SaleRequest.create(lines=[_line()], payment_method="cash", customer_name="  ", idempotency_key=" ")

    assert request.customer_name is None
    assert request.idempotency_key is None


def test_compute_total_over_line_items() -> None:
    lines = [
        SaleLineItem(sale_id="s", stock_item_id="a", quantity=Decimal("3"), unit_price=Decimal("5.00")),
        SaleLineItem(sale_id="s", stock_item_id="b", quantity=Decimal("0.5"), unit_price=Decimal("4.00")),
    ]

    assert compute_total(lines) == Decimal("17.00")
    assert lines[1].subtotal == Decimal("2.00")


def _sale(created_at: datetime) -> Sale:
    return Sale(
        sale_id="sale-1",
        business_id="biz-1",
        recorded_by="user-1",
        total_amount=Decimal("15.00"),
        payment_method=PaymentMethod.CASH,
        created_at=created_at,
    )


def test_sale_created_at_must_be_utc() -> None:
    """Verify created_at enforces UTC timezone-aware timestamp."""

    with pytest.raises(ValueError):
        _sale(datetime(2025, 1, 1, 0, 0, 0))

    with pytest.raises(ValueError):
        _sale(datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone(timedelta(hours=3))))


def test_sale_is_immutable() -> None:
    """Verify Sale cannot be mutated after creation (frozen entity)."""

    sale = _sale(datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc))

    with pytest.raises(FrozenInstanceError):
        sale.total_amount = Decimal("0")  # type: ignore[misc]

    line = SaleLineItem(sale_id="sale-1", stock_item_id="a", quantity=Decimal("1"), unit_price=Decimal("15.00"))
    assert sale.with_lines([line]).lines == (line,)
    assert sale.lines == ()
