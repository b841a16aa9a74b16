"""
Inventory service: catalog queries and stock management.

Reads return point-in-time snapshots; no locks are held. Anything that must
not oversell re-reads immediately before writing (see sale_service).

Catalog management (create, edit, replenish, archive) is owner-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.settings import get_settings
from domain.context import ActorContext
from domain.errors import NotFoundError, ValidationError
from domain.stock import StockItem, StockStatus, UnitOfMeasure, to_decimal
from repositories import stock_repository
from services.retry import with_io_retry

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset(
    {"name", "description", "unit_price", "cost_price", "reorder_level", "unit_of_measure", "custom_unit"}
)
_CLEARABLE_FIELDS = frozenset({"description", "cost_price", "custom_unit"})
_DECIMAL_FIELDS = frozenset({"unit_price", "cost_price", "reorder_level"})


@dataclass(frozen=True, slots=True)
class NewStockItem:
    """Input for adding an item to the catalog."""

    name: str
    quantity: Decimal
    unit_price: Decimal
    unit_of_measure: UnitOfMeasure = UnitOfMeasure.PIECE
    reorder_level: Decimal = Decimal("0")
    description: Optional[str] = None
    cost_price: Optional[Decimal] = None
    custom_unit: Optional[str] = None


def query_inventory(context: ActorContext, *, in_stock_only: bool = False) -> List[StockItem]:
    """
    Current catalog of the acting business, ordered by name.

    Raises:
        NotFoundError: the business has no matching items.
        TransientIOError: the store stayed unreachable after bounded retries.
    """

    items = with_io_retry(stock_repository.list_stock_items, context.business_id, in_stock_only=in_stock_only)
    if not items:
        raise NotFoundError("Catalog", [context.business_id])
    return items


def get_stock_item(context: ActorContext, stock_item_id: str) -> StockItem:
    item = with_io_retry(stock_repository.get_stock_item, context.business_id, stock_item_id)
    if item is None:
        raise NotFoundError("StockItem", [stock_item_id])
    return item


def list_low_stock(context: ActorContext) -> List[StockItem]:
    """Items at or below their reorder level (may be empty)."""

    return with_io_retry(stock_repository.list_low_stock_items, context.business_id)


def _validated(context: ActorContext, new_item: NewStockItem) -> StockItem:
    return StockItem(
        stock_item_id="new",
        business_id=context.business_id,
        name=new_item.name.strip(),
        description=new_item.description,
        quantity=new_item.quantity,
        unit_price=new_item.unit_price,
        cost_price=new_item.cost_price,
        reorder_level=new_item.reorder_level,
        unit_of_measure=new_item.unit_of_measure,
        custom_unit=new_item.custom_unit,
    )


def _store_new_item(context: ActorContext, candidate: StockItem) -> StockItem:
    existing = with_io_retry(stock_repository.find_stock_item_by_name, context.business_id, candidate.name)
    if existing is None:
        created = stock_repository.create_stock_item(candidate)
        logger.info(
            "Stock item created",
            extra={"business_id": context.business_id, "stock_item_id": created.stock_item_id, "actor_id": context.actor_id},
        )
        return created

    if existing.status is StockStatus.ARCHIVED:
        stock_repository.set_stock_status(context.business_id, existing.stock_item_id, StockStatus.ACTIVE)

    stock_repository.update_prices(
        context.business_id,
        existing.stock_item_id,
        unit_price=candidate.unit_price,
        cost_price=candidate.cost_price,
    )
    if candidate.quantity > 0:
        updated = stock_repository.increment_stock(
            context.business_id,
            existing.stock_item_id,
            candidate.quantity,
            attempts=get_settings().stock_update_attempts,
        )
    else:
        updated = existing

    logger.info(
        "Existing stock item replenished from add request",
        extra={"business_id": context.business_id, "stock_item_id": existing.stock_item_id, "added": str(candidate.quantity)},
    )
    return get_stock_item(context, updated.stock_item_id)


def add_stock_item(context: ActorContext, new_item: NewStockItem) -> StockItem:
    """
    Add an item to the catalog.

    If an item with the same name already exists in this business, its stock
    is replenished by the new quantity and its prices refreshed instead of
    creating a duplicate.
    """

    context.require_boss("add stock items")
    # Validates the input shape before any I/O.
    candidate = _validated(context, new_item)
    return _store_new_item(context, candidate)


def add_stock_items(context: ActorContext, new_items: Sequence[NewStockItem]) -> List[StockItem]:
    """
    Add several items at once, in order.

    Every entry is validated before the first write, so one bad row rejects
    the whole batch. Each entry is then stored like `add_stock_item`; a
    repeated name within the batch replenishes the item added earlier.

    Raises:
        ValidationError: the batch is empty or an entry is invalid; the
            field is reported as `items[<index>].<field>`.
    """

    context.require_boss("add stock items")
    if not new_items:
        raise ValidationError("at least one item is required", field="items")

    candidates = []
    for index, new_item in enumerate(new_items):
        try:
            candidates.append(_validated(context, new_item))
        except ValidationError as exc:
            raise ValidationError(exc.message, field=f"items[{index}].{exc.field}") from exc

    stored = [_store_new_item(context, candidate) for candidate in candidates]
    logger.info("Stock items added in bulk", extra={"business_id": context.business_id, "count": len(stored)})
    return stored


def update_stock_item(context: ActorContext, stock_item_id: str, changes: Mapping[str, Any]) -> StockItem:
    """
    Edit the catalog details of an item.

    Editable: name, description, unit_price, cost_price, reorder_level,
    unit_of_measure, custom_unit. Quantity is not editable here: it moves
    only through sales and `replenish_stock`.

    Raises:
        PermissionDeniedError: the actor is not a Boss.
        ValidationError: unknown or non-editable field, an invalid value, or
            a name already used by another item of this business.
        NotFoundError: no such item in this business.
    """

    context.require_boss("edit stock items")
    not_editable = sorted(set(changes) - _EDITABLE_FIELDS)
    if not_editable:
        raise ValidationError(f"field is not editable: {not_editable[0]}", field=not_editable[0])

    updates: Dict[str, Any] = {}
    for field, value in changes.items():
        if value is None and field not in _CLEARABLE_FIELDS:
            raise ValidationError(f"{field} cannot be cleared", field=field)
        if value is None:
            updates[field] = None
        elif field in _DECIMAL_FIELDS:
            updates[field] = to_decimal(value, name=field)
        elif field == "unit_of_measure":
            updates[field] = _unit_of_measure(value)
        else:
            updates[field] = str(value).strip() if field == "name" else value

    existing = get_stock_item(context, stock_item_id)
    if not updates:
        return existing
    candidate = replace(existing, **updates)

    if candidate.name != existing.name:
        clash = with_io_retry(stock_repository.find_stock_item_by_name, context.business_id, candidate.name)
        if clash is not None and clash.stock_item_id != stock_item_id:
            raise ValidationError(f"another item is already named {candidate.name!r}", field="name")

    updated = stock_repository.update_stock_details(candidate)
    logger.info(
        "Stock item updated",
        extra={"business_id": context.business_id, "stock_item_id": stock_item_id, "fields": sorted(updates)},
    )
    return updated


def _unit_of_measure(value: Any) -> UnitOfMeasure:
    try:
        return UnitOfMeasure(value)
    except ValueError:
        raise ValidationError(f"unknown unit_of_measure {value!r}", field="unit_of_measure") from None


def replenish_stock(context: ActorContext, stock_item_id: str, quantity: object) -> StockItem:
    """Increase on-hand quantity with a guarded update."""

    context.require_boss("replenish stock")
    amount = to_decimal(quantity, name="quantity")
    if amount <= 0:
        raise ValidationError("quantity must be positive", field="quantity")

    updated = stock_repository.increment_stock(
        context.business_id,
        stock_item_id,
        amount,
        attempts=get_settings().stock_update_attempts,
    )
    logger.info(
        "Stock replenished",
        extra={"business_id": context.business_id, "stock_item_id": stock_item_id, "added": str(amount)},
    )
    return updated


def archive_stock_item(context: ActorContext, stock_item_id: str) -> None:
    """Soft-delete: historical sales keep referencing the row."""

    context.require_boss("archive stock items")
    stock_repository.set_stock_status(context.business_id, stock_item_id, StockStatus.ARCHIVED)
    logger.info("Stock item archived", extra={"business_id": context.business_id, "stock_item_id": stock_item_id})


__all__ = [
    "NewStockItem",
    "add_stock_item",
    "add_stock_items",
    "archive_stock_item",
    "get_stock_item",
    "list_low_stock",
    "query_inventory",
    "replenish_stock",
    "update_stock_item",
]
