import logging
from typing import Any, Dict
from fastapi import APIRouter, Body, status
from fastapi.responses import JSONResponse

from app.schemas.payment import GatewayWebhookPayload
from app.services.payment_service import confirm_gateway_payment

router = APIRouter()
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("uvicorn")


@router.post("/webhook")
async def gateway_webhook_endpoint(body: Dict[str, Any] = Body(...)):
    """
    Payment confirmation from the gateway.
    500 means the payment was not applied, including bodies that fail validation;
    CRM note problems never change the response.
    """
    try:
        payload = GatewayWebhookPayload.model_validate(body)
        log.info(f"Received payment webhook for order {payload.ReturnValue} (ResponseCode {payload.ResponseCode})")
        order = await confirm_gateway_payment(payload)
    except Exception as e:
        log.error(f"Error processing payment webhook: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Error processing payment webhook", "error": str(e)},
        )

    return {
        "message": "Payment processed successfully",
        "orderId": str(order.id),
        "orderData": {
            "id": str(order.id),
            "status": order.status.value,
            "total_amount": str(order.total_amount),
            "transaction_id": order.transaction_id,
            "document_url": order.document_url,
            "paid_at": str(order.paid_at) if order.paid_at else None,
        },
    }
