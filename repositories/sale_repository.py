"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale and
SaleLineItem domain entities. It does not enforce business rules (stock
availability, totals); it only inserts and fetches sale records, always
scoped to the owning business.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from domain.sale import PaymentMethod, Sale, SaleLineItem, SaleStatus
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import execute, get_client

# Supabase table names for sales and their line items.
# Keep these aligned with your database schema.
_SALES_TABLE: str = "sales"
_SALE_ITEMS_TABLE: str = "sales_items"


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale (without lines)."""

    return Sale(
        sale_id=str(row["id"]),
        business_id=str(row["sme_id"]),
        recorded_by=str(row["recorded_by"]),
        total_amount=Decimal(str(row["total_amount"])),
        payment_method=PaymentMethod(row["payment_method"]),
        created_at=parse_utc_datetime(row["created_at"]),
        customer_name=row.get("customer_name"),
        status=SaleStatus(row.get("status") or SaleStatus.COMPLETED.value),
        idempotency_key=row.get("idempotency_key"),
    )


def _row_to_line_item(row: Mapping[str, Any]) -> SaleLineItem:
    return SaleLineItem(
        line_item_id=str(row["id"]) if row.get("id") is not None else None,
        sale_id=str(row["sale_id"]),
        stock_item_id=str(row["stock_item_id"]),
        quantity=Decimal(str(row["quantity"])),
        unit_price=Decimal(str(row["unit_price"])),
    )


def insert_sale_header(sale: Sale) -> None:
    """
    Insert the sale header row.

    The caller generates `sale.sale_id` so the id is known even if the
    response is lost.
    """

    payload: dict[str, Any] = {
        "id": sale.sale_id,
        "sme_id": sale.business_id,
        "recorded_by": sale.recorded_by,
        "customer_name": sale.customer_name,
        "total_amount": str(sale.total_amount),
        "payment_method": sale.payment_method.value,
        "status": sale.status.value,
        "idempotency_key": sale.idempotency_key,
        "created_at": to_iso_utc(sale.created_at, name="created_at"),
    }
    execute(get_client().table(_SALES_TABLE).insert(payload), "record sale")


def insert_line_items(lines: Sequence[SaleLineItem]) -> None:
    """
    Insert all line items of one sale in a single request.

    PostgREST runs a multi-row insert as one statement, so either every line
    is stored or none is.
    """

    payload: List[dict[str, Any]] = [
        {
            "sale_id": line.sale_id,
            "stock_item_id": line.stock_item_id,
            "quantity": str(line.quantity),
            "unit_price": str(line.unit_price),
            "subtotal": str(line.subtotal),
        }
        for line in lines
    ]
    execute(get_client().table(_SALE_ITEMS_TABLE).insert(payload), "record sale items")


def list_line_items(sale_ids: Sequence[str]) -> Dict[str, List[SaleLineItem]]:
    """
    Fetch line items for several sales.

    Returns:
        Mapping of sale_id -> lines (sales without lines are absent).
    """

    if not sale_ids:
        return {}
    rows = execute(
        get_client().table(_SALE_ITEMS_TABLE).select("*").in_("sale_id", list(sale_ids)),
        "list sale items",
    )
    grouped: Dict[str, List[SaleLineItem]] = {}
    for row in rows:
        line = _row_to_line_item(row)
        grouped.setdefault(line.sale_id, []).append(line)
    return grouped


def get_sale_by_id(business_id: str, sale_id: str) -> Optional[Sale]:
    """
    Retrieve a single sale header by its ID.

    Returns:
        Sale or None if not found (or owned by another business)
    """

    rows = execute(
        get_client()
        .table(_SALES_TABLE)
        .select("*")
        .eq("id", sale_id)
        .eq("sme_id", business_id)
        .limit(1),
        "get sale",
    )
    if not rows:
        return None
    return _row_to_sale(rows[0])


def find_sale_by_idempotency_key(business_id: str, idempotency_key: str) -> Optional[Sale]:
    rows = execute(
        get_client()
        .table(_SALES_TABLE)
        .select("*")
        .eq("sme_id", business_id)
        .eq("idempotency_key", idempotency_key)
        .limit(1),
        "look up sale by idempotency key",
    )
    if not rows:
        return None
    return _row_to_sale(rows[0])


def list_sales(business_id: str, limit: int = 50) -> List[Sale]:
    """
    Retrieve the most recent sales of a business, newest first.

    Returns:
        List[Sale] (possibly empty)
    """

    rows = execute(
        get_client()
        .table(_SALES_TABLE)
        .select("*")
        .eq("sme_id", business_id)
        .order("created_at", desc=True)
        .limit(limit),
        "list sales",
    )
    return [_row_to_sale(row) for row in rows]


def update_sale_status(business_id: str, sale_id: str, status: SaleStatus) -> bool:
    """
    Administrative status change; the only mutation a recorded sale allows.

    Returns:
        True if a row was updated.
    """

    rows = execute(
        get_client()
        .table(_SALES_TABLE)
        .update({"status": status.value})
        .eq("id", sale_id)
        .eq("sme_id", business_id),
        "update sale status",
    )
    return bool(rows)


__all__ = [
    "find_sale_by_idempotency_key",
    "get_sale_by_id",
    "insert_line_items",
    "insert_sale_header",
    "list_line_items",
    "list_sales",
    "update_sale_status",
]
