"""
Receipt service: plain-text receipts delivered by SMS.

Receipts are sent after a sale has committed and are strictly best-effort:
a failed delivery never changes or blocks the sale. Delivery goes through
the Infobip SMS API (`POST /sms/2/text/advanced`).
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import httpx

from config.settings import Settings, get_settings
from domain.context import ActorContext
from domain.errors import NotFoundError, ReceiptDeliveryError, SalesPlatformError, ValidationError
from domain.sale import Sale, compute_total
from repositories.business_repository import BusinessProfile, get_business_profile
from services import sale_service
from services.retry import with_io_retry

logger = logging.getLogger(__name__)

_PHONE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")
_TIMEOUT_SECONDS = 10.0


def normalize_phone_number(phone_number: str) -> str:
    """Strip spaces and dashes; require 7-15 digits with an optional leading '+'."""

    cleaned = re.sub(r"[\s\-()]", "", phone_number or "")
    if not _PHONE_PATTERN.match(cleaned):
        raise ValidationError(f"invalid phone number {phone_number!r}", field="phone_number")
    return cleaned


def format_receipt(sale: Sale, business: Optional[BusinessProfile], currency: str) -> str:
    """
    Render the receipt text.

    Amounts use the unit price captured on each line, so a receipt re-sent
    later still matches what the customer paid.
    """

    parts = ["Digital Receipt", ""]
    if business is not None:
        parts.append(business.business_name)
        if business.contact_phone:
            parts.append(f"Tel: {business.contact_phone}")
        if business.website:
            parts.append(business.website)
        parts.append("")

    parts.append(f"Order #{sale.sale_id}")
    parts.append(f"Date: {sale.created_at.strftime('%Y-%m-%d %H:%M')} UTC")
    if sale.customer_name:
        parts.append(f"Customer: {sale.customer_name}")
    parts.append("")
    parts.append("Items:")
    for line in sale.lines:
        name = line.item_name or line.stock_item_id
        parts.append(f"- {name}")
        parts.append(f"  {line.quantity} x {line.unit_price:.2f} = {line.subtotal:.2f} {currency}")

    total = compute_total(sale.lines) if sale.lines else sale.total_amount
    parts.append("")
    parts.append(f"Total: {total:.2f} {currency}")
    parts.append(f"Paid by: {sale.payment_method.value.replace('_', ' ')}")
    parts.append("")
    parts.append("Thank you for your business!")
    return "\n".join(parts)


def _sms_endpoint(settings: Settings) -> str:
    base = (settings.infobip_base_url or "").rstrip("/")
    if not base.startswith(("http://", "https://")):
        base = f"https://{base}"
    return f"{base}/sms/2/text/advanced"


def _delivery_status(body: Any, sale_id: str) -> Optional[str]:
    """Read `messages[0].status.groupName` from the provider response."""

    unexpected = ReceiptDeliveryError("SMS provider returned an unexpected response", details={"sale_id": sale_id})
    if not isinstance(body, dict):
        raise unexpected
    messages = body.get("messages") or [{}]
    if not isinstance(messages, list):
        raise unexpected
    first = messages[0] or {}
    if not isinstance(first, dict):
        raise unexpected
    status = first.get("status") or {}
    if not isinstance(status, dict):
        raise unexpected
    return status.get("groupName")


def send_receipt(
    sale: Sale,
    destination: str,
    *,
    business: Optional[BusinessProfile] = None,
    http_client: Optional[httpx.Client] = None,
) -> None:
    """
    Send the receipt for `sale` to `destination` by SMS.

    Raises:
        ValidationError: bad phone number
        ReceiptDeliveryError: provider not configured, unreachable, or did not
            accept the message
    """

    settings = get_settings()
    if not settings.receipts_enabled:
        raise ReceiptDeliveryError("SMS receipts are not configured (INFOBIP_BASE_URL / INFOBIP_API_KEY)")

    phone = normalize_phone_number(destination)
    payload = {
        "messages": [
            {
                "destinations": [{"to": phone}],
                "from": settings.receipt_sender_id,
                "text": format_receipt(sale, business, settings.currency),
            }
        ]
    }
    headers = {
        "Authorization": f"App {settings.infobip_api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }

    client = http_client or httpx.Client(timeout=_TIMEOUT_SECONDS)
    try:
        response = client.post(_sms_endpoint(settings), json=payload, headers=headers)
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPError as exc:
        raise ReceiptDeliveryError(f"SMS provider request failed: {exc}", details={"sale_id": sale.sale_id}) from exc
    except ValueError as exc:
        raise ReceiptDeliveryError("SMS provider returned invalid JSON", details={"sale_id": sale.sale_id}) from exc
    finally:
        if http_client is None:
            client.close()

    group = _delivery_status(body, sale.sale_id)
    if group != "PENDING":
        raise ReceiptDeliveryError(
            f"SMS provider did not accept the receipt (status {group!r})",
            details={"sale_id": sale.sale_id, "status": group},
        )

    logger.info("Receipt sent", extra={"sale_id": sale.sale_id})


def send_receipt_for_sale(context: ActorContext, sale_id: str, destination: str) -> None:
    """Load the sale and the business profile, then send the receipt."""

    sale = sale_service.get_sale(context, sale_id)
    business = with_io_retry(get_business_profile, context.business_id)
    if business is None:
        raise NotFoundError("Business", [context.business_id])
    send_receipt(sale, destination, business=business)


def send_receipt_best_effort(
    context: ActorContext,
    sale: Sale,
    destination: str,
    *,
    http_client: Optional[httpx.Client] = None,
) -> bool:
    """
    Send a receipt without ever raising.

    Returns:
        True if the provider accepted the message.
    """

    try:
        business = with_io_retry(get_business_profile, context.business_id)
        send_receipt(sale, destination, business=business, http_client=http_client)
    except SalesPlatformError as exc:
        logger.warning(
            "Receipt not sent; sale is unaffected",
            extra={"sale_id": sale.sale_id, "error": exc.message},
        )
        return False
    return True


__all__ = [
    "format_receipt",
    "normalize_phone_number",
    "send_receipt",
    "send_receipt_best_effort",
    "send_receipt_for_sale",
]
