"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain.sale import Sale
from domain.stock import StockItem, UnitOfMeasure


# ============================================================================
# Stock Models
# ============================================================================

class StockItemResponse(BaseModel):
    """Single stock item in API response."""
    id: str
    name: str
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    cost_price: Optional[Decimal] = None
    reorder_level: Decimal
    unit_of_measure: str
    unit_label: str
    status: str
    is_low_stock: bool

    @classmethod
    def from_domain(cls, item: StockItem) -> "StockItemResponse":
        return cls(
            id=item.stock_item_id,
            name=item.name,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            cost_price=item.cost_price,
            reorder_level=item.reorder_level,
            unit_of_measure=item.unit_of_measure.value,
            unit_label=item.unit_label,
            status=item.status.value,
            is_low_stock=item.is_low_stock,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "name": "Maize flour 2kg",
                "description": None,
                "quantity": "10",
                "unit_price": "5.00",
                "cost_price": "3.50",
                "reorder_level": "5",
                "unit_of_measure": "pack",
                "unit_label": "pack",
                "status": "active",
                "is_low_stock": False
            }
        }


class StockListResponse(BaseModel):
    """Response for stock listing."""
    items: List[StockItemResponse]
    total_count: int


class StockItemCreateRequest(BaseModel):
    """Request to add an item to the catalog."""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    quantity: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., gt=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    reorder_level: Decimal = Field(Decimal("0"), ge=0)
    unit_of_measure: UnitOfMeasure = UnitOfMeasure.PIECE
    custom_unit: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Maize flour 2kg",
                "quantity": "10",
                "unit_price": "5.00",
                "cost_price": "3.50",
                "reorder_level": "5",
                "unit_of_measure": "pack"
            }
        }


class StockItemBulkCreateRequest(BaseModel):
    """Request to add several items at once."""
    items: List[StockItemCreateRequest] = Field(..., min_length=1)


class StockItemUpdateRequest(BaseModel):
    """
    Request to edit an item's catalog details.

    Only the fields sent are changed; quantity is not editable here.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    unit_price: Optional[Decimal] = Field(None, gt=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    reorder_level: Optional[Decimal] = Field(None, ge=0)
    unit_of_measure: Optional[UnitOfMeasure] = None
    custom_unit: Optional[str] = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "unit_price": "5.50",
                "reorder_level": "8"
            }
        }


class ReplenishRequest(BaseModel):
    """Request to add stock to an existing item."""
    quantity: Decimal = Field(..., gt=0)


# ============================================================================
# Sale Models
# ============================================================================

class SaleLineRequestModel(BaseModel):
    """One line of a sale submission."""
    stock_item_id: str = Field(..., min_length=1)
    quantity: Decimal
    unit_price: Decimal


class SaleCreateRequest(BaseModel):
    """
    Request to record a sale.

    Field checks (positive numbers, known payment method) happen in the
    domain so the same rules apply to every caller.
    """
    items: List[SaleLineRequestModel] = Field(..., min_length=1)
    payment_method: str
    customer_name: Optional[str] = None
    total: Optional[Decimal] = Field(None, description="Caller-computed total; the server recomputes it")
    idempotency_key: Optional[str] = Field(None, max_length=100)
    receipt_phone: Optional[str] = Field(None, description="Send an SMS receipt after the sale commits")

    class Config:
        json_schema_extra = {
            "example": {
                "items": [
                    {"stock_item_id": "123e4567-e89b-12d3-a456-426614174000", "quantity": "3", "unit_price": "5.00"}
                ],
                "payment_method": "cash",
                "customer_name": "Jane",
                "idempotency_key": "till-2-000184"
            }
        }


class SaleLineResponse(BaseModel):
    stock_item_id: str
    item_name: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal


class SaleResponse(BaseModel):
    """A recorded sale."""
    id: str
    total_amount: Decimal
    payment_method: str
    customer_name: Optional[str] = None
    recorded_by: str
    status: str
    created_at: datetime
    items: List[SaleLineResponse]

    @classmethod
    def from_domain(cls, sale: Sale) -> "SaleResponse":
        return cls(
            id=sale.sale_id,
            total_amount=sale.total_amount,
            payment_method=sale.payment_method.value,
            customer_name=sale.customer_name,
            recorded_by=sale.recorded_by,
            status=sale.status.value,
            created_at=sale.created_at,
            items=[
                SaleLineResponse(
                    stock_item_id=line.stock_item_id,
                    item_name=line.item_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                )
                for line in sale.lines
            ],
        )


class RecordSaleResponse(BaseModel):
    """Response after recording a sale."""
    sale: SaleResponse
    state: str
    replayed: bool = False
    receipt_sent: Optional[bool] = None


class SaleListResponse(BaseModel):
    sales: List[SaleResponse]
    total_count: int


# ============================================================================
# Receipt Models
# ============================================================================

class SendReceiptRequest(BaseModel):
    """Request to send an SMS receipt for a recorded sale."""
    sale_id: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=7)


class SendReceiptResponse(BaseModel):
    message: str


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "INSUFFICIENT_STOCK",
                "message": "Insufficient stock for Maize flour 2kg: requested 11, available 10",
                "details": {"stock_item_id": "123e4567-e89b-12d3-a456-426614174000", "requested": "11", "available": "10"}
            }
        }
