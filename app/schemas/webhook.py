import uuid
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class SendWebhookRequest(BaseModel):
    """Body of the direct send endpoint."""
    orderId: Optional[uuid.UUID] = Field(None, description="Order whose webhooks should be sent now.")


class TaskResult(BaseModel):
    id: str
    status: str
    error: Optional[str] = None


class ProcessResponse(BaseModel):
    """Summary returned by the on-demand dispatcher endpoint."""
    processed: int
    message: str
    results: List[TaskResult] = []


class DeliveryLogResponse(BaseModel):
    id: uuid.UUID
    webhook_id: uuid.UUID
    url: str
    task_id: Optional[uuid.UUID] = None
    order_id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    event: str
    request_payload: Dict[str, Any]
    response_status: int
    response_body: Optional[str] = None
    success: bool
    sent_at: str
