import hmac
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, status
from fastapi.responses import JSONResponse

from app.core import config
from app.schemas.webhook import DeliveryLogResponse, ProcessResponse, SendWebhookRequest, TaskResult
from app.services.dispatcher import WebhookDispatcher
from app.services.order_context import OrderNotFound

router = APIRouter()
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("uvicorn")


async def get_dispatcher():
    """One dispatcher (and HTTP client) per request."""
    async with WebhookDispatcher() as dispatcher:
        yield dispatcher


def _secret_matches(provided: Optional[str]) -> bool:
    expected = config.WEBHOOK_SECRET
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


@router.post("/process", response_model=ProcessResponse)
async def process_webhooks_endpoint(
    x_webhook_secret: Optional[str] = Header(None),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """
    On-demand sweep for external schedulers. Requires the x-webhook-secret header.
    Always 200 once the queue could be read, whatever the individual delivery outcomes.
    """
    if not _secret_matches(x_webhook_secret):
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})

    try:
        outcomes = await dispatcher.run_sweep()
    except Exception as e:
        log.error(f"Error processing webhooks: {e}")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})

    processed = sum(1 for outcome in outcomes if outcome.status != "skipped")
    return ProcessResponse(
        processed=processed,
        message="Webhooks processed successfully",
        results=[TaskResult(**outcome.as_dict()) for outcome in outcomes],
    )


@router.post("/sweep")
async def sweep_webhooks_endpoint(dispatcher: WebhookDispatcher = Depends(get_dispatcher)):
    """Processes one batch of pending webhooks and reports the outcome of each."""
    try:
        outcomes = await dispatcher.run_sweep()
    except Exception as e:
        log.error(f"Error fetching pending webhooks: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Error fetching pending webhooks"},
        )

    if not outcomes:
        return {"message": "No pending webhooks"}
    return {"results": [outcome.as_dict() for outcome in outcomes]}


@router.post("/send")
async def send_webhook_endpoint(
    request_data: SendWebhookRequest,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """
    Sends order_paid / product_purchased webhooks for one order immediately,
    with payloads built from the order's current state. Nothing is queued.
    """
    if not request_data.orderId:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Order ID is required"})

    try:
        results = await dispatcher.send_direct(request_data.orderId)
    except OrderNotFound:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Order not found"})
    except Exception as e:
        log.error(f"Error sending webhooks for order {request_data.orderId}: {e}")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})

    if not results:
        return {"success": True, "message": "No webhooks found for this business", "results": []}
    return {"success": True, "results": [result.as_dict() for result in results]}


@router.get("/logs")
async def get_webhook_logs_endpoint(
    business_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """Delivery history for a business, newest first."""
    entries = await dispatcher.get_delivery_logs(business_id, limit=limit)
    return [
        DeliveryLogResponse(
            id=entry.id,
            webhook_id=entry.subscription_id,
            url=entry.subscription.url,
            task_id=entry.task_id,
            order_id=entry.order_id,
            product_id=entry.product_id,
            event=entry.event_type,
            request_payload=entry.request_payload,
            response_status=entry.response_status,
            response_body=entry.response_body,
            success=entry.success,
            sent_at=str(entry.sent_at),
        ).model_dump(mode="json")
        for entry in entries
    ]
