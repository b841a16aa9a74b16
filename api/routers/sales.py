"""
Sales API Endpoints.

Endpoints for recording sales and reading sale history.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_actor_context
from api.models import (
    RecordSaleResponse,
    SaleCreateRequest,
    SaleListResponse,
    SaleResponse,
)
from domain.context import ActorContext
from domain.sale import SaleRequest
from services import receipt_service, sale_service

router = APIRouter()


@router.post(
    "/sales",
    response_model=RecordSaleResponse,
    status_code=201,
    summary="Record Sale",
    description="Record a sale and decrement stock. Overselling is rejected before anything is written."
)
def record_sale(request: SaleCreateRequest, context: ActorContext = Depends(get_actor_context)):
    """
    Record a sale.

    **Process:**
    1. Re-reads current stock for every line
    2. Rejects the whole sale if any item is short (409, nothing written)
    3. Computes the total from the lines (a submitted `total` is ignored)
    4. Writes the sale, its lines, then decrements stock

    **Partial failures:**
    A 502 (or 409 `STOCK_DECREMENT_RACE`) response whose details say
    `"sale_exists": true` means the sale was recorded. Do not resubmit; use
    the returned `sale_id` to reconcile. Submissions that carry an
    `idempotency_key` can be retried safely.

    **Example request:**
    ```json
    {
      "items": [{"stock_item_id": "…", "quantity": "3", "unit_price": "5.00"}],
      "payment_method": "cash",
      "customer_name": "Jane"
    }
    ```
    """
    sale_request = SaleRequest.create(
        lines=[line.model_dump() for line in request.items],
        payment_method=request.payment_method,
        customer_name=request.customer_name,
        declared_total=request.total,
        idempotency_key=request.idempotency_key,
    )
    result = sale_service.record_sale(sale_request, context)

    receipt_sent = None
    if request.receipt_phone and not result.replayed:
        receipt_sent = receipt_service.send_receipt_best_effort(context, result.sale, request.receipt_phone)

    return RecordSaleResponse(
        sale=SaleResponse.from_domain(result.sale),
        state=result.state.value,
        replayed=result.replayed,
        receipt_sent=receipt_sent,
    )


@router.get("/sales", response_model=SaleListResponse, summary="List Sales")
def list_sales(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of sales to return"),
    context: ActorContext = Depends(get_actor_context),
):
    sales = sale_service.list_sales(context, limit=limit)
    return SaleListResponse(
        sales=[SaleResponse.from_domain(sale) for sale in sales],
        total_count=len(sales),
    )


@router.get("/sales/{sale_id}", response_model=SaleResponse, summary="Get Sale")
def get_sale(sale_id: str, context: ActorContext = Depends(get_actor_context)):
    return SaleResponse.from_domain(sale_service.get_sale(context, sale_id))


@router.post("/sales/{sale_id}/void", response_model=SaleResponse, summary="Void Sale")
def void_sale(sale_id: str, context: ActorContext = Depends(get_actor_context)):
    """Administrative void (Boss only). Stock is not returned."""
    return SaleResponse.from_domain(sale_service.void_sale(context, sale_id))
