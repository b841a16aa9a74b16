"""
Stock API Endpoints.

Endpoints for browsing the catalog and managing stock levels.
Catalog changes require the Boss role.
"""

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_actor_context
from api.models import (
    ReplenishRequest,
    StockItemBulkCreateRequest,
    StockItemCreateRequest,
    StockItemResponse,
    StockItemUpdateRequest,
    StockListResponse,
)
from domain.context import ActorContext
from services import inventory_service
from services.inventory_service import NewStockItem

router = APIRouter()


def _new_stock_item(request: StockItemCreateRequest) -> NewStockItem:
    return NewStockItem(
        name=request.name,
        description=request.description,
        quantity=request.quantity,
        unit_price=request.unit_price,
        cost_price=request.cost_price,
        reorder_level=request.reorder_level,
        unit_of_measure=request.unit_of_measure,
        custom_unit=request.custom_unit,
    )


@router.get(
    "/stock",
    response_model=StockListResponse,
    summary="Query Stock",
    description="Current catalog of the caller's business, ordered by name."
)
def get_stock(
    in_stock_only: bool = Query(False, description="Only items with quantity > 0"),
    context: ActorContext = Depends(get_actor_context),
):
    """
    Query the catalog.

    Quantities are a point-in-time snapshot; recording a sale re-checks them.

    **Example usage:**
    - All items: `GET /api/v1/stock`
    - Sellable items only: `GET /api/v1/stock?in_stock_only=true`
    """
    items = inventory_service.query_inventory(context, in_stock_only=in_stock_only)
    return StockListResponse(
        items=[StockItemResponse.from_domain(item) for item in items],
        total_count=len(items),
    )


@router.get(
    "/stock/low",
    response_model=StockListResponse,
    summary="Low Stock Alerts",
    description="Items at or below their reorder level."
)
def get_low_stock(context: ActorContext = Depends(get_actor_context)):
    items = inventory_service.list_low_stock(context)
    return StockListResponse(
        items=[StockItemResponse.from_domain(item) for item in items],
        total_count=len(items),
    )


@router.get("/stock/{stock_item_id}", response_model=StockItemResponse, summary="Get Stock Item")
def get_stock_item(stock_item_id: str, context: ActorContext = Depends(get_actor_context)):
    return StockItemResponse.from_domain(inventory_service.get_stock_item(context, stock_item_id))


@router.post(
    "/stock",
    response_model=StockItemResponse,
    status_code=201,
    summary="Add Stock Item",
    description="Add an item to the catalog. An existing item with the same name is replenished instead."
)
def create_stock_item(request: StockItemCreateRequest, context: ActorContext = Depends(get_actor_context)):
    item = inventory_service.add_stock_item(context, _new_stock_item(request))
    return StockItemResponse.from_domain(item)


@router.post(
    "/stock/bulk",
    response_model=StockListResponse,
    status_code=201,
    summary="Add Stock Items In Bulk",
    description="Add several items in one request. Every entry is validated before any is stored."
)
def create_stock_items(request: StockItemBulkCreateRequest, context: ActorContext = Depends(get_actor_context)):
    items = inventory_service.add_stock_items(context, [_new_stock_item(entry) for entry in request.items])
    return StockListResponse(
        items=[StockItemResponse.from_domain(item) for item in items],
        total_count=len(items),
    )


@router.put(
    "/stock/{stock_item_id}",
    response_model=StockItemResponse,
    summary="Edit Stock Item",
    description="Change an item's catalog details. Quantity changes go through replenish or sales."
)
def update_stock_item(
    stock_item_id: str,
    request: StockItemUpdateRequest,
    context: ActorContext = Depends(get_actor_context),
):
    """
    Edit an item.

    Only the fields present in the body are changed; send `null` to clear
    `description`, `cost_price` or `custom_unit`.

    **Example usage:**
    - `PUT /api/v1/stock/{id}` with `{"unit_price": "5.50"}`
    """
    changes = request.model_dump(exclude_unset=True)
    item = inventory_service.update_stock_item(context, stock_item_id, changes)
    return StockItemResponse.from_domain(item)


@router.post("/stock/{stock_item_id}/replenish", response_model=StockItemResponse, summary="Replenish Stock")
def replenish_stock_item(
    stock_item_id: str,
    request: ReplenishRequest,
    context: ActorContext = Depends(get_actor_context),
):
    item = inventory_service.replenish_stock(context, stock_item_id, request.quantity)
    return StockItemResponse.from_domain(item)


@router.delete("/stock/{stock_item_id}", status_code=204, summary="Archive Stock Item")
def archive_stock_item(stock_item_id: str, context: ActorContext = Depends(get_actor_context)):
    """Archive (soft-delete) an item; sales that reference it are kept."""
    inventory_service.archive_stock_item(context, stock_item_id)
    return Response(status_code=204)
