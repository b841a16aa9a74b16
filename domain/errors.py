"""
Domain errors for sale recording and stock tracking.

Callers branch on these types:
- ValidationError, NotFoundError, InsufficientStockError: nothing was written;
  correct the input and resubmit.
- TransientIOError: the store was unreachable; safe to retry with backoff.
- PartialWriteFailure (and its StockDecrementRace subtype): the commit was
  interrupted after the sale header was written. A sale may already exist, so
  the caller must not blindly resubmit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence


@dataclass(frozen=True, slots=True)
class LineFailure:
    """One sale line whose stock decrement did not apply."""

    line_index: int
    stock_item_id: str
    quantity: Decimal
    reason: str
    race: bool  # True when the guarded update refused; False for I/O or store errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_index": self.line_index,
            "stock_item_id": self.stock_item_id,
            "quantity": str(self.quantity),
            "reason": self.reason,
            "race": self.race,
        }


class SalesPlatformError(Exception):
    """Base exception for all platform errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SalesPlatformError):
    """Bad or missing input, detected before any I/O."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field} if field else {},
        )
        self.field = field


class NotFoundError(SalesPlatformError):
    """Referenced entity is absent or belongs to another business."""

    def __init__(self, entity: str, identifiers: Sequence[str]):
        ids = [str(i) for i in identifiers]
        super().__init__(
            f"{entity} not found: {', '.join(ids)}",
            code="NOT_FOUND",
            details={"entity": entity, "ids": ids},
        )
        self.entity = entity
        self.identifiers = ids


class PermissionDeniedError(SalesPlatformError):
    """The acting role may not perform this action."""

    def __init__(self, action: str, role: str):
        super().__init__(
            f"Role {role} may not {action}",
            code="PERMISSION_DENIED",
            details={"action": action, "role": role},
        )


class InsufficientStockError(SalesPlatformError):
    """Requested quantity exceeds the quantity on hand."""

    def __init__(self, stock_item_id: str, requested: Decimal, available: Decimal, name: Optional[str] = None):
        label = f"{name} ({stock_item_id})" if name else stock_item_id
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            code="INSUFFICIENT_STOCK",
            details={
                "stock_item_id": stock_item_id,
                "requested": str(requested),
                "available": str(available),
            },
        )
        self.stock_item_id = stock_item_id
        self.requested = requested
        self.available = available


class TransientIOError(SalesPlatformError):
    """The data store could not be reached. Safe to retry."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="TRANSIENT_IO", details=details)


class StoreError(SalesPlatformError):
    """The data store rejected a request (constraint, schema, permission)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="STORE_ERROR", details=details)


class StockConflictError(SalesPlatformError):
    """
    A guarded stock update could not be applied.

    Raised by the repository when the compare-and-set lost every attempt or the
    fresh quantity no longer covers the decrement.
    """

    def __init__(self, stock_item_id: str, requested: Decimal, available: Optional[Decimal]):
        super().__init__(
            f"Guarded stock update failed for {stock_item_id}: requested {requested}, "
            f"available {available if available is not None else 'unknown'}",
            code="STOCK_CONFLICT",
            details={
                "stock_item_id": stock_item_id,
                "requested": str(requested),
                "available": str(available) if available is not None else None,
            },
        )
        self.stock_item_id = stock_item_id
        self.requested = requested
        self.available = available


class PartialWriteFailure(SalesPlatformError):
    """
    The commit sequence stopped after the sale header was persisted.

    `stage` is "items-write" or "stock-decrement"; `last_completed_state` is the
    CommitState value reached before the failure. `failed_lines` lists the
    lines whose stock was not decremented (empty for "items-write", and for
    replays of an earlier interrupted submission, which set `replayed`).
    """

    def __init__(
        self,
        stage: str,
        last_completed_state: str,
        sale_id: str,
        failed_lines: Optional[List[LineFailure]] = None,
        stock_decremented: str = "none",
        message: Optional[str] = None,
        code: str = "PARTIAL_WRITE_FAILURE",
        replayed: bool = False,
    ):
        self.stage = stage
        self.last_completed_state = last_completed_state
        self.sale_id = sale_id
        self.failed_lines = list(failed_lines or [])
        self.stock_decremented = stock_decremented
        self.replayed = replayed
        super().__init__(
            message or f"Sale {sale_id} recorded but commit stopped at {stage}",
            code=code,
            details={
                "stage": stage,
                "last_completed_state": last_completed_state,
                "sale_id": sale_id,
                "sale_exists": True,
                "stock_decremented": stock_decremented,
                "failed_lines": [f.to_dict() for f in self.failed_lines],
                "replayed": replayed,
            },
        )


class StockDecrementRace(PartialWriteFailure):
    """
    Every failed decrement lost to a concurrent sale.

    The sale is recorded; the guarded update refused to take stock below zero.
    """

    def __init__(
        self,
        last_completed_state: str,
        sale_id: str,
        failed_lines: List[LineFailure],
        stock_decremented: str,
    ):
        super().__init__(
            stage="stock-decrement",
            last_completed_state=last_completed_state,
            sale_id=sale_id,
            failed_lines=failed_lines,
            stock_decremented=stock_decremented,
            message=f"Sale {sale_id} recorded but stock changed concurrently for "
            f"{', '.join(f.stock_item_id for f in failed_lines)}",
            code="STOCK_DECREMENT_RACE",
        )


class ReceiptDeliveryError(SalesPlatformError):
    """The SMS provider did not accept the receipt."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="RECEIPT_DELIVERY_FAILED", details=details)


__all__ = [
    "SalesPlatformError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "InsufficientStockError",
    "TransientIOError",
    "StoreError",
    "StockConflictError",
    "PartialWriteFailure",
    "StockDecrementRace",
    "ReceiptDeliveryError",
    "LineFailure",
]
