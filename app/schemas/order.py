from pydantic import BaseModel, Field
from typing import List, Optional
import uuid
from decimal import Decimal

from app.models.order import OrderStatus


class OrderItemRequest(BaseModel):
    """Schema for a single item in the order request."""
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)

class OrderRequest(BaseModel):
    """Schema for the full order creation request body."""
    business_id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    items: List[OrderItemRequest]

class OrderPlacementResponse(BaseModel):
    """Response schema for a newly created or updated order."""
    order_id: uuid.UUID
    status: OrderStatus
    total_amount: Decimal
    message: str

class ManualPaymentRequest(BaseModel):
    """Schema for marking an order paid outside the gateway (cash, transfer...)."""
    payment_method: str = Field("cash", description="How the customer paid.")
    payment_reference: str = Field("manual", description="Receipt or reference number.")

class OrderItemResponse(BaseModel):
    """Schema for an item inside the detailed order response."""
    product_id: uuid.UUID
    name: str
    quantity: int
    price_at_time: str  # Use string for Decimal type serialization

class OrderDetailResponse(BaseModel):
    """Schema for fetching detailed order information."""
    id: uuid.UUID
    status: OrderStatus
    total_amount: Decimal
    items: List[OrderItemResponse]
    created_at: str
    paid_at: Optional[str] = None
