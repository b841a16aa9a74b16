"""
Domain: Sales and their line items.

Rules implemented here:
- A sale has 1..N lines; every line has a positive quantity and a positive unit price.
- The unit price is captured on the line at sale time and never re-derived later.
- The sale total is exactly the sum of quantity x unit price over its lines.
- Sales are immutable once recorded; only the administrative status may change.

Commit progress through the store is modelled by CommitState, in order:
VALIDATED -> HEADER_WRITTEN -> ITEMS_WRITTEN -> COMMITTED.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .errors import ValidationError
from .stock import to_decimal
from .time import require_utc_timestamp


class PaymentMethod(str, Enum):
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    CREDIT = "credit"

    @classmethod
    def _missing_(cls, value: object) -> "PaymentMethod | None":
        # Sale forms have sent "CASH", "MPESA", "mpesa", "bank-transfer".
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        if normalized in ("mpesa", "m_pesa", "mobile"):
            return cls.MOBILE_MONEY
        for member in cls:
            if member.value == normalized:
                return member
        return None


class SaleStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"  # header written, line items missing
    STOCK_PENDING = "stock_pending"  # lines written, no stock decremented
    STOCK_PARTIAL = "stock_partial"  # lines written, some stock decremented
    VOIDED = "voided"


class CommitState(str, Enum):
    VALIDATED = "validated"
    HEADER_WRITTEN = "header_written"
    ITEMS_WRITTEN = "items_written"
    COMMITTED = "committed"


@dataclass(frozen=True, slots=True)
class SaleLineRequest:
    """One requested line: which item, how many, at what unit price."""

    stock_item_id: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True, slots=True)
class SaleRequest:
    """
    A proposed sale, already shape-validated.

    Build it with `SaleRequest.create(...)`, which raises ValidationError for
    bad input before anything touches the store.
    """

    lines: Tuple[SaleLineRequest, ...]
    payment_method: PaymentMethod
    customer_name: Optional[str] = None
    declared_total: Optional[Decimal] = None
    idempotency_key: Optional[str] = None

    @staticmethod
    def create(
        lines: Sequence[Mapping[str, Any]],
        payment_method: Any,
        customer_name: Optional[str] = None,
        declared_total: Any = None,
        idempotency_key: Optional[str] = None,
    ) -> "SaleRequest":
        if not lines:
            raise ValidationError("a sale needs at least one line", field="lines")

        parsed = []
        for index, raw in enumerate(lines):
            stock_item_id = str(raw.get("stock_item_id") or "").strip()
            if not stock_item_id:
                raise ValidationError(f"line {index}: stock_item_id is required", field=f"lines[{index}].stock_item_id")
            if raw.get("quantity") is None:
                raise ValidationError(f"line {index}: quantity is required", field=f"lines[{index}].quantity")
            if raw.get("unit_price") is None:
                raise ValidationError(f"line {index}: unit_price is required", field=f"lines[{index}].unit_price")
            quantity = to_decimal(raw["quantity"], name=f"lines[{index}].quantity")
            unit_price = to_decimal(raw["unit_price"], name=f"lines[{index}].unit_price")
            if quantity <= 0:
                raise ValidationError(f"line {index}: quantity must be positive", field=f"lines[{index}].quantity")
            if unit_price <= 0:
                raise ValidationError(f"line {index}: unit_price must be positive", field=f"lines[{index}].unit_price")
            parsed.append(SaleLineRequest(stock_item_id=stock_item_id, quantity=quantity, unit_price=unit_price))

        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"unknown payment method {payment_method!r}", field="payment_method") from None

        total = to_decimal(declared_total, name="total") if declared_total is not None else None

        name = customer_name.strip() if customer_name else None
        key = idempotency_key.strip() if idempotency_key else None

        return SaleRequest(
            lines=tuple(parsed),
            payment_method=method,
            customer_name=name or None,
            declared_total=total,
            idempotency_key=key or None,
        )

    @property
    def total(self) -> Decimal:
        """Authoritative total, whatever the caller declared."""

        return compute_total(self.lines)

    def demand_by_item(self) -> Dict[str, Decimal]:
        """Total requested quantity per stock item (lines may repeat an item)."""

        demand: Dict[str, Decimal] = {}
        for line in self.lines:
            demand[line.stock_item_id] = demand.get(line.stock_item_id, Decimal("0")) + line.quantity
        return demand


@dataclass(frozen=True, slots=True)
class SaleLineItem:
    """Persisted line of a sale with the unit price captured at sale time."""

    sale_id: str
    stock_item_id: str
    quantity: Decimal
    unit_price: Decimal
    line_item_id: Optional[str] = None
    item_name: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Immutable record of a sale.

    `lines` is empty when the sale was loaded without its items.
    """

    sale_id: str
    business_id: str
    recorded_by: str
    total_amount: Decimal
    payment_method: PaymentMethod
    created_at: datetime
    customer_name: Optional[str] = None
    status: SaleStatus = SaleStatus.COMPLETED
    idempotency_key: Optional[str] = None
    lines: Tuple[SaleLineItem, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    def with_lines(self, lines: Iterable[SaleLineItem]) -> "Sale":
        return Sale(
            sale_id=self.sale_id,
            business_id=self.business_id,
            recorded_by=self.recorded_by,
            total_amount=self.total_amount,
            payment_method=self.payment_method,
            created_at=self.created_at,
            customer_name=self.customer_name,
            status=self.status,
            idempotency_key=self.idempotency_key,
            lines=tuple(lines),
        )


def compute_total(lines: Iterable[Any]) -> Decimal:
    """Sum of quantity x unit_price; works for requests and persisted lines."""

    return sum((line.quantity * line.unit_price for line in lines), Decimal("0"))


__all__ = [
    "CommitState",
    "PaymentMethod",
    "Sale",
    "SaleLineItem",
    "SaleLineRequest",
    "SaleRequest",
    "SaleStatus",
    "compute_total",
]
