"""
Stock repository (persistence).

This module provides *only* persistence operations for the StockItem domain
entity. It contains no business rules about sales; it only enforces simple
persistence constraints: business scoping on every query and guarded
(compare-and-set) quantity updates.

Guarded update: PostgREST cannot express `quantity = quantity - n`, so a
quantity change is written as
    UPDATE stock_items SET quantity = q - n WHERE id = ? AND sme_id = ? AND quantity = q
where q is the value just read. Zero updated rows means another writer got
there first; the row is re-read and the update retried while the fresh value
still allows it.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from domain.errors import NotFoundError, StockConflictError
from domain.stock import StockItem, StockStatus, UnitOfMeasure
from domain.time import parse_utc_datetime, utc_now
from repositories.client import execute, get_client

logger = logging.getLogger(__name__)

# Supabase table name for stock items.
# Keep this aligned with your database schema.
_STOCK_TABLE: str = "stock_items"


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def _row_to_stock_item(row: Mapping[str, Any]) -> StockItem:
    """Convert a Supabase row into a StockItem."""

    return StockItem(
        stock_item_id=str(row["id"]),
        business_id=str(row["sme_id"]),
        name=str(row["name"]),
        description=row.get("description"),
        quantity=Decimal(str(row["quantity"])),
        unit_price=Decimal(str(row["unit_price"])),
        cost_price=_optional_decimal(row.get("cost_price")),
        reorder_level=Decimal(str(row.get("reorder_level") or 0)),
        unit_of_measure=UnitOfMeasure(row.get("unit_of_measure") or UnitOfMeasure.PIECE.value),
        custom_unit=row.get("custom_unit"),
        status=StockStatus(row.get("status") or StockStatus.ACTIVE.value),
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
        updated_at=parse_utc_datetime(row["updated_at"]) if row.get("updated_at") else None,
    )


def list_stock_items(business_id: str, *, in_stock_only: bool = False, include_archived: bool = False) -> List[StockItem]:
    """
    Fetch the catalog of a business, ordered by name.

    Args:
        business_id: Owning business
        in_stock_only: Only items with quantity > 0
        include_archived: Include archived (soft-deleted) items

    Returns:
        List[StockItem] (possibly empty)
    """

    query = get_client().table(_STOCK_TABLE).select("*").eq("sme_id", business_id)
    if not include_archived:
        query = query.eq("status", StockStatus.ACTIVE.value)
    if in_stock_only:
        query = query.gt("quantity", 0)
    rows = execute(query.order("name"), "list stock items")
    return [_row_to_stock_item(row) for row in rows]


def get_stock_item(business_id: str, stock_item_id: str) -> Optional[StockItem]:
    """
    Retrieve a single stock item, scoped to its business.

    Returns:
        StockItem or None if not found (or owned by another business)
    """

    rows = execute(
        get_client()
        .table(_STOCK_TABLE)
        .select("*")
        .eq("id", stock_item_id)
        .eq("sme_id", business_id)
        .limit(1),
        "get stock item",
    )
    if not rows:
        return None
    return _row_to_stock_item(rows[0])


def get_stock_items_by_ids(business_id: str, stock_item_ids: Iterable[str]) -> Dict[str, StockItem]:
    """
    Fetch several stock items in one query.

    Returns:
        Mapping of stock_item_id -> StockItem for the ids that exist in this business.
    """

    ids = sorted(set(stock_item_ids))
    if not ids:
        return {}
    rows = execute(
        get_client().table(_STOCK_TABLE).select("*").eq("sme_id", business_id).in_("id", ids),
        "fetch stock items",
    )
    items = [_row_to_stock_item(row) for row in rows]
    return {item.stock_item_id: item for item in items}


def find_stock_item_by_name(business_id: str, name: str) -> Optional[StockItem]:
    """
    Look up an item by its exact name, archived items included.

    Args:
        business_id: Owning business
        name: Item name, already trimmed

    Returns:
        StockItem or None if this business has no item with that name
    """

    rows = execute(
        get_client()
        .table(_STOCK_TABLE)
        .select("*")
        .eq("sme_id", business_id)
        .eq("name", name)
        .limit(1),
        "find stock item by name",
    )
    if not rows:
        return None
    return _row_to_stock_item(rows[0])


def list_low_stock_items(business_id: str) -> List[StockItem]:
    """
    Active items at or below their reorder level, lowest quantity first.

    PostgREST cannot compare two columns, so the filter runs here.
    """

    items = list_stock_items(business_id)
    low = [item for item in items if item.is_low_stock]
    return sorted(low, key=lambda item: (item.quantity, item.name))


def create_stock_item(item: StockItem) -> StockItem:
    """
    Insert a new stock item.

    The id and timestamps on `item` are ignored; fresh ones are generated.
    """

    stock_item_id = str(uuid4())
    now = utc_now()

    payload: dict[str, Any] = {
        "id": stock_item_id,
        "sme_id": item.business_id,
        "name": item.name,
        "description": item.description,
        "quantity": str(item.quantity),
        "unit_price": str(item.unit_price),
        "cost_price": str(item.cost_price) if item.cost_price is not None else None,
        "reorder_level": str(item.reorder_level),
        "unit_of_measure": item.unit_of_measure.value,
        "custom_unit": item.custom_unit if item.unit_of_measure is UnitOfMeasure.OTHER else None,
        "status": StockStatus.ACTIVE.value,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }

    rows = execute(get_client().table(_STOCK_TABLE).insert(payload), "create stock item")
    if rows:
        return _row_to_stock_item(rows[0])
    return _row_to_stock_item(payload)


def update_prices(
    business_id: str,
    stock_item_id: str,
    *,
    unit_price: Optional[Decimal] = None,
    cost_price: Optional[Decimal] = None,
) -> None:
    """
    Refresh the selling and/or cost price of an item.

    Args:
        business_id: Owning business
        stock_item_id: Item to update
        unit_price: New selling price; unchanged when None
        cost_price: New cost price; unchanged when None

    Returns:
        None

    Raises:
        NotFoundError: no such item in this business
    """

    payload: dict[str, Any] = {"updated_at": utc_now().isoformat()}
    if unit_price is not None:
        payload["unit_price"] = str(unit_price)
    if cost_price is not None:
        payload["cost_price"] = str(cost_price)

    rows = execute(
        get_client().table(_STOCK_TABLE).update(payload).eq("id", stock_item_id).eq("sme_id", business_id),
        "update stock prices",
    )
    if not rows:
        raise NotFoundError("StockItem", [stock_item_id])


def update_stock_details(item: StockItem) -> StockItem:
    """
    Persist the catalog details of `item`; quantity and status are left alone.

    Quantity only ever changes through the guarded updates below.

    Returns:
        The StockItem as stored after the update.

    Raises:
        NotFoundError: no such item in this business
    """

    payload: dict[str, Any] = {
        "name": item.name,
        "description": item.description,
        "unit_price": str(item.unit_price),
        "cost_price": str(item.cost_price) if item.cost_price is not None else None,
        "reorder_level": str(item.reorder_level),
        "unit_of_measure": item.unit_of_measure.value,
        "custom_unit": item.custom_unit if item.unit_of_measure is UnitOfMeasure.OTHER else None,
        "updated_at": utc_now().isoformat(),
    }

    rows = execute(
        get_client()
        .table(_STOCK_TABLE)
        .update(payload)
        .eq("id", item.stock_item_id)
        .eq("sme_id", item.business_id),
        "update stock item details",
    )
    if not rows:
        raise NotFoundError("StockItem", [item.stock_item_id])
    return _row_to_stock_item(rows[0])


def set_stock_status(business_id: str, stock_item_id: str, status: StockStatus) -> None:
    """Soft status change (archive / reactivate). Items are never hard-deleted."""

    rows = execute(
        get_client()
        .table(_STOCK_TABLE)
        .update({"status": status.value, "updated_at": utc_now().isoformat()})
        .eq("id", stock_item_id)
        .eq("sme_id", business_id),
        "update stock status",
    )
    if not rows:
        raise NotFoundError("StockItem", [stock_item_id])


def _guarded_quantity_update(business_id: str, stock_item_id: str, delta: Decimal, attempts: int) -> StockItem:
    """
    Apply `quantity += delta` with compare-and-set retries.

    Raises:
        NotFoundError: the item does not exist in this business.
        StockConflictError: the result would be negative, or every attempt lost
            to a concurrent writer.
    """

    current: Optional[StockItem] = None
    for attempt in range(1, attempts + 1):
        current = get_stock_item(business_id, stock_item_id)
        if current is None:
            raise NotFoundError("StockItem", [stock_item_id])

        new_quantity = current.quantity + delta
        if new_quantity < 0:
            raise StockConflictError(stock_item_id, abs(delta), current.quantity)

        rows = execute(
            get_client()
            .table(_STOCK_TABLE)
            .update({"quantity": str(new_quantity), "updated_at": utc_now().isoformat()})
            .eq("id", stock_item_id)
            .eq("sme_id", business_id)
            .eq("quantity", str(current.quantity)),
            "update stock quantity",
        )
        if rows:
            return current.with_quantity(new_quantity)

        logger.info(
            "Stock quantity changed concurrently; retrying guarded update",
            extra={"stock_item_id": stock_item_id, "attempt": attempt, "delta": str(delta)},
        )

    raise StockConflictError(stock_item_id, abs(delta), current.quantity if current else None)


def decrement_stock(business_id: str, stock_item_id: str, quantity: Decimal, *, attempts: int = 5) -> StockItem:
    """
    Reduce on-hand quantity by `quantity`, never below zero.

    Returns:
        The StockItem as it is after the decrement.
    """

    if quantity <= 0:
        raise ValueError("decrement quantity must be positive")
    return _guarded_quantity_update(business_id, stock_item_id, -quantity, attempts)


def increment_stock(business_id: str, stock_item_id: str, quantity: Decimal, *, attempts: int = 5) -> StockItem:
    """Increase on-hand quantity (replenishment)."""

    if quantity <= 0:
        raise ValueError("increment quantity must be positive")
    return _guarded_quantity_update(business_id, stock_item_id, quantity, attempts)


__all__ = [
    "create_stock_item",
    "decrement_stock",
    "find_stock_item_by_name",
    "get_stock_item",
    "get_stock_items_by_ids",
    "increment_stock",
    "list_low_stock_items",
    "list_stock_items",
    "set_stock_status",
    "update_prices",
    "update_stock_details",
]
