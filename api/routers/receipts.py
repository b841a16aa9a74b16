"""
Receipts API Endpoints.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_actor_context
from api.models import SendReceiptRequest, SendReceiptResponse
from domain.context import ActorContext
from services import receipt_service

router = APIRouter()


@router.post(
    "/receipts/send-sms",
    response_model=SendReceiptResponse,
    summary="Send SMS Receipt",
    description="Send the receipt of a recorded sale to a phone number."
)
def send_receipt_sms(request: SendReceiptRequest, context: ActorContext = Depends(get_actor_context)):
    receipt_service.send_receipt_for_sale(context, request.sale_id, request.phone_number)
    return SendReceiptResponse(message="Receipt sent successfully")
