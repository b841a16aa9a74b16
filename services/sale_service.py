"""
Sale service for recording sales against stock.

Handles:
- Re-validating availability against fresh stock rows right before writing
- Writing the sale header, then its line items, then the stock decrements
- Reporting exactly how far the commit got when a later step fails
- Idempotent replays for submissions that carry an idempotency key

The store gives single-row atomicity only, so there is no rollback. Once the
header is written the sale is the record of truth; stock that failed to
decrement is reported for out-of-band reconciliation. Overselling is still
prevented: availability is checked before the first write and every
decrement is a guarded update that refuses to go below zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple
from uuid import uuid4

from config.settings import get_settings
from domain.context import ActorContext
from domain.errors import (
    InsufficientStockError,
    LineFailure,
    NotFoundError,
    PartialWriteFailure,
    SalesPlatformError,
    StockConflictError,
    StockDecrementRace,
    StoreError,
    TransientIOError,
)
from domain.sale import CommitState, Sale, SaleLineItem, SaleRequest, SaleStatus
from domain.stock import StockItem
from domain.time import utc_now
from repositories import sale_repository, stock_repository
from services.retry import with_io_retry

logger = logging.getLogger(__name__)

# Postgres unique_violation; raised when a concurrent submission already
# inserted a header with the same idempotency key.
_UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True, slots=True)
class RecordedSale:
    """
    Outcome of a successful `record_sale` call.

    sale: the persisted sale, with its lines
    state: commit state reached (COMMITTED for fresh sales)
    replayed: True if an earlier submission with the same idempotency key
        was returned instead of writing anything
    """

    sale: Sale
    state: CommitState
    replayed: bool = False


def _load_lines(sale: Sale) -> Sale:
    lines = with_io_retry(sale_repository.list_line_items, [sale.sale_id]).get(sale.sale_id, [])
    if not lines:
        return sale.with_lines([])

    items = with_io_retry(
        stock_repository.get_stock_items_by_ids,
        sale.business_id,
        [line.stock_item_id for line in lines],
    )
    named = [
        SaleLineItem(
            line_item_id=line.line_item_id,
            sale_id=line.sale_id,
            stock_item_id=line.stock_item_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            item_name=items[line.stock_item_id].name if line.stock_item_id in items else None,
        )
        for line in lines
    ]
    return sale.with_lines(named)


# Header statuses left by an interrupted commit, with how far it got.
_INTERRUPTED: Dict[SaleStatus, Tuple[str, CommitState, str]] = {
    SaleStatus.INCOMPLETE: ("items-write", CommitState.HEADER_WRITTEN, "none"),
    SaleStatus.STOCK_PENDING: ("stock-decrement", CommitState.ITEMS_WRITTEN, "none"),
    SaleStatus.STOCK_PARTIAL: ("stock-decrement", CommitState.ITEMS_WRITTEN, "partial"),
}


def _replay(existing: Sale) -> RecordedSale:
    """
    Answer a repeated idempotency key with the earlier outcome.

    A sale whose commit was interrupted is reported again as a
    PartialWriteFailure, so a retrying till never mistakes it for committed.
    """

    log_extra = {"sale_id": existing.sale_id, "business_id": existing.business_id}
    interrupted = _INTERRUPTED.get(existing.status)
    if interrupted is not None:
        stage, last_state, stock_decremented = interrupted
        logger.warning("Repeated idempotency key for a sale awaiting reconciliation", extra=log_extra)
        raise PartialWriteFailure(
            stage=stage,
            last_completed_state=last_state.value,
            sale_id=existing.sale_id,
            stock_decremented=stock_decremented,
            message=f"Sale {existing.sale_id} was recorded earlier but its commit stopped at {stage}",
            replayed=True,
        )

    logger.info("Returning existing sale for repeated idempotency key", extra=log_extra)
    return RecordedSale(sale=_load_lines(existing), state=CommitState.COMMITTED, replayed=True)


def _fetch_and_check_stock(request: SaleRequest, context: ActorContext) -> Dict[str, StockItem]:
    """
    Re-read every referenced item and verify the whole demand fits.

    Raises NotFoundError or InsufficientStockError; nothing has been written yet.
    """

    demand = request.demand_by_item()
    items = with_io_retry(stock_repository.get_stock_items_by_ids, context.business_id, demand.keys())

    missing = [item_id for item_id in demand if item_id not in items or not items[item_id].is_active]
    if missing:
        raise NotFoundError("StockItem", missing)

    for item_id, requested in demand.items():
        item = items[item_id]
        if not item.can_supply(requested):
            raise InsufficientStockError(item_id, requested, item.quantity, name=item.name)

    return items


def _flag_for_reconciliation(sale: Sale, status: SaleStatus) -> None:
    """Mark an interrupted sale header. Failure here is only logged."""

    try:
        sale_repository.update_sale_status(sale.business_id, sale.sale_id, status)
    except SalesPlatformError as exc:
        logger.error(
            "Could not flag sale header for reconciliation",
            extra={"sale_id": sale.sale_id, "business_id": sale.business_id, "status": status.value, "error": str(exc)},
        )


def record_sale(request: SaleRequest, context: ActorContext) -> RecordedSale:
    """
    Record a sale and decrement stock.

    Process:
    1. Replay an earlier sale if the idempotency key was already used
    2. Re-fetch every referenced stock item and check availability
    3. Compute the total from the lines (a declared total is only compared)
    4. Write the sale header
    5. Write all line items
    6. Decrement stock for every line, collecting per-line failures

    Returns:
        RecordedSale with the committed sale

    Raises:
        NotFoundError, InsufficientStockError: before any write
        TransientIOError: store unreachable before or while writing the header;
            no sale exists and the whole call may be retried
        StoreError: the store rejected the header; no sale exists
        PartialWriteFailure: the header exists but items or stock failed
        StockDecrementRace: the header and items exist but concurrent sales
            took the stock first
        PartialWriteFailure with `replayed`: the idempotency key belongs to an
            earlier submission whose commit was interrupted
    """

    if request.idempotency_key:
        existing = with_io_retry(
            sale_repository.find_sale_by_idempotency_key,
            context.business_id,
            request.idempotency_key,
        )
        if existing is not None:
            return _replay(existing)

    items = _fetch_and_check_stock(request, context)

    total = request.total
    if request.declared_total is not None and request.declared_total != total:
        logger.warning(
            "Declared sale total differs from computed total; using computed",
            extra={"declared_total": str(request.declared_total), "computed_total": str(total)},
        )

    sale = Sale(
        sale_id=str(uuid4()),
        business_id=context.business_id,
        recorded_by=context.actor_id,
        total_amount=total,
        payment_method=request.payment_method,
        created_at=utc_now(),
        customer_name=request.customer_name,
        status=SaleStatus.COMPLETED,
        idempotency_key=request.idempotency_key,
    )
    state = CommitState.VALIDATED
    log_extra = {"sale_id": sale.sale_id, "business_id": sale.business_id, "actor_id": sale.recorded_by}

    # VALIDATED -> HEADER_WRITTEN
    try:
        sale_repository.insert_sale_header(sale)
    except TransientIOError as exc:
        logger.warning("Sale header write failed; nothing persisted", extra=log_extra)
        raise TransientIOError(
            "Could not record sale: store unavailable",
            details={
                "stage": "header-write",
                "last_completed_state": state.value,
                "sale_exists": False,
                "stock_decremented": "none",
            },
        ) from exc
    except StoreError as exc:
        if request.idempotency_key and exc.details.get("code") == _UNIQUE_VIOLATION:
            existing = sale_repository.find_sale_by_idempotency_key(context.business_id, request.idempotency_key)
            if existing is not None:
                return _replay(existing)
        raise
    state = CommitState.HEADER_WRITTEN

    # HEADER_WRITTEN -> ITEMS_WRITTEN
    lines = [
        SaleLineItem(
            sale_id=sale.sale_id,
            stock_item_id=line.stock_item_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            item_name=items[line.stock_item_id].name,
        )
        for line in request.lines
    ]
    try:
        sale_repository.insert_line_items(lines)
    except (TransientIOError, StoreError) as exc:
        logger.error("Sale line items write failed; header left for reconciliation", extra=log_extra)
        _flag_for_reconciliation(sale, SaleStatus.INCOMPLETE)
        raise PartialWriteFailure(
            stage="items-write",
            last_completed_state=state.value,
            sale_id=sale.sale_id,
            stock_decremented="none",
        ) from exc
    state = CommitState.ITEMS_WRITTEN

    # ITEMS_WRITTEN -> COMMITTED; every line is attempted.
    attempts = get_settings().stock_update_attempts
    failures: List[LineFailure] = []
    for index, line in enumerate(lines):
        try:
            stock_repository.decrement_stock(
                context.business_id,
                line.stock_item_id,
                line.quantity,
                attempts=attempts,
            )
        except StockConflictError as exc:
            failures.append(LineFailure(index, line.stock_item_id, line.quantity, exc.message, race=True))
        except (TransientIOError, StoreError, NotFoundError) as exc:
            failures.append(LineFailure(index, line.stock_item_id, line.quantity, exc.message, race=False))

    if failures:
        stock_decremented = "none" if len(failures) == len(lines) else "partial"
        logger.error(
            "Stock decrement failed for %d of %d lines; stock needs reconciliation",
            len(failures),
            len(lines),
            extra={**log_extra, "failed_lines": [f.to_dict() for f in failures]},
        )
        _flag_for_reconciliation(
            sale, SaleStatus.STOCK_PENDING if stock_decremented == "none" else SaleStatus.STOCK_PARTIAL
        )
        if all(f.race for f in failures):
            raise StockDecrementRace(
                last_completed_state=state.value,
                sale_id=sale.sale_id,
                failed_lines=failures,
                stock_decremented=stock_decremented,
            )
        raise PartialWriteFailure(
            stage="stock-decrement",
            last_completed_state=state.value,
            sale_id=sale.sale_id,
            failed_lines=failures,
            stock_decremented=stock_decremented,
        )

    state = CommitState.COMMITTED
    logger.info("Sale committed", extra={**log_extra, "total_amount": str(total), "lines": len(lines)})
    return RecordedSale(sale=sale.with_lines(lines), state=state)


def get_sale(context: ActorContext, sale_id: str) -> Sale:
    """Sale with its lines; NotFoundError if absent or owned by another business."""

    sale = with_io_retry(sale_repository.get_sale_by_id, context.business_id, sale_id)
    if sale is None:
        raise NotFoundError("Sale", [sale_id])
    return _load_lines(sale)


def list_sales(context: ActorContext, limit: int = 50) -> List[Sale]:
    """Most recent sales of the business, newest first, with their lines."""

    sales = with_io_retry(sale_repository.list_sales, context.business_id, limit)
    if not sales:
        return []

    lines_by_sale = with_io_retry(sale_repository.list_line_items, [s.sale_id for s in sales])
    return [sale.with_lines(lines_by_sale.get(sale.sale_id, [])) for sale in sales]


def void_sale(context: ActorContext, sale_id: str) -> Sale:
    """
    Administrative void. Stock is not returned; corrections are recorded as
    replenishments or new sales.
    """

    context.require_boss("void sales")
    if not sale_repository.update_sale_status(context.business_id, sale_id, SaleStatus.VOIDED):
        raise NotFoundError("Sale", [sale_id])
    logger.info("Sale voided", extra={"sale_id": sale_id, "business_id": context.business_id, "actor_id": context.actor_id})
    return get_sale(context, sale_id)


__all__ = [
    "RecordedSale",
    "get_sale",
    "list_sales",
    "record_sale",
    "void_sale",
]
