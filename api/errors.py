"""
Error translation for the API.

Domain errors become JSON bodies `{"error", "message", "details"}`.
Partial-write failures carry `sale_exists` and `stock_decremented` in their
details so the till can reconcile instead of resubmitting.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from api.models import ErrorResponse
from domain.errors import (
    InsufficientStockError,
    NotFoundError,
    PartialWriteFailure,
    PermissionDeniedError,
    ReceiptDeliveryError,
    SalesPlatformError,
    StockConflictError,
    StockDecrementRace,
    StoreError,
    TransientIOError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first: StockDecrementRace is a PartialWriteFailure.
EXCEPTION_STATUS_MAP: list[tuple[type[SalesPlatformError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (StockConflictError, status.HTTP_409_CONFLICT),
    (StockDecrementRace, status.HTTP_409_CONFLICT),
    (PartialWriteFailure, status.HTTP_502_BAD_GATEWAY),
    (ReceiptDeliveryError, status.HTTP_502_BAD_GATEWAY),
    (TransientIOError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StoreError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


# Documented error bodies, attached to every router in api/main.py.
ERROR_RESPONSES: dict[int, dict] = {
    code: {"model": ErrorResponse} for code in sorted({code for _, code in EXCEPTION_STATUS_MAP})
}

def status_for(exc: SalesPlatformError) -> int:
    for exc_type, code in EXCEPTION_STATUS_MAP:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def platform_error_handler(request: Request, exc: SalesPlatformError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error(
            "Request failed: %s", exc.message,
            extra={"path": request.url.path, "error_code": exc.code},
        )
    headers = {"Retry-After": "1"} if isinstance(exc, TransientIOError) else None
    return JSONResponse(status_code=code, content=exc.to_dict(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SalesPlatformError, platform_error_handler)
