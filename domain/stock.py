"""
Domain: Stock items (catalog entries with an on-hand quantity).

Rules implemented here:
- Quantity on hand is a non-negative Decimal; a sale may never take it below zero.
- Unit price is positive; cost price, when present, is non-negative.
- Reorder level is non-negative; an item is "low" when quantity <= reorder level.
- Unit of measure "other" requires a free-text custom unit.
- Items are never hard-deleted; archiving is a status change.

This module contains only pure domain entities/value objects: no I/O, no database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from .errors import ValidationError
from .time import require_utc_timestamp


class UnitOfMeasure(str, Enum):
    PIECE = "piece"
    KILOGRAM = "kg"
    GRAM = "g"
    MILLIGRAM = "mg"
    LITRE = "l"
    METRE = "m"
    CENTIMETRE = "cm"
    MILLIMETRE = "mm"
    SQUARE_METRE = "sqm"
    CUBIC_METRE = "cbm"
    DOZEN = "dozen"
    BOX = "box"
    PACK = "pack"
    OTHER = "other"


class StockStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


def to_decimal(value: Any, *, name: str) -> Decimal:
    """Coerce a number-like value to Decimal, raising ValidationError on junk."""

    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number", field=name)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{name} must be a number, got {value!r}", field=name) from None
    if not result.is_finite():
        raise ValidationError(f"{name} must be a finite number", field=name)
    return result


@dataclass(frozen=True, slots=True)
class StockItem:
    """
    Immutable snapshot of a catalog item owned by one business.

    Quantity changes produce new instances (`with_quantity`); persistence of the
    change is the repository's job.
    """

    stock_item_id: str
    business_id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    unit_of_measure: UnitOfMeasure = UnitOfMeasure.PIECE
    reorder_level: Decimal = Decimal("0")
    description: Optional[str] = None
    cost_price: Optional[Decimal] = None
    custom_unit: Optional[str] = None
    status: StockStatus = StockStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("name is required", field="name")
        if self.quantity < 0:
            raise ValidationError("quantity must not be negative", field="quantity")
        if self.unit_price <= 0:
            raise ValidationError("unit_price must be positive", field="unit_price")
        if self.cost_price is not None and self.cost_price < 0:
            raise ValidationError("cost_price must not be negative", field="cost_price")
        if self.reorder_level < 0:
            raise ValidationError("reorder_level must not be negative", field="reorder_level")
        if self.unit_of_measure is UnitOfMeasure.OTHER and not (self.custom_unit or "").strip():
            raise ValidationError("custom_unit is required when unit_of_measure is 'other'", field="custom_unit")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def unit_label(self) -> str:
        """Display unit: the custom unit for 'other', otherwise the enum value."""

        if self.unit_of_measure is UnitOfMeasure.OTHER and self.custom_unit:
            return self.custom_unit
        return self.unit_of_measure.value

    @property
    def is_active(self) -> bool:
        return self.status is StockStatus.ACTIVE

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.reorder_level

    def can_supply(self, quantity: Decimal) -> bool:
        return self.is_active and quantity <= self.quantity

    def with_quantity(self, quantity: Decimal) -> "StockItem":
        """Return a copy with a new on-hand quantity (validated non-negative)."""

        return replace(self, quantity=quantity)


__all__ = [
    "StockItem",
    "StockStatus",
    "UnitOfMeasure",
    "to_decimal",
]
