import logging
from fastapi import APIRouter, HTTPException, status
from app.schemas.response import SuccessResponse
from app.services.order_service import place_order, get_order_by_id, mark_order_paid
from app.services.dispatcher import send_order_webhooks_safely
from app.schemas.order import OrderRequest, OrderPlacementResponse, OrderDetailResponse, ManualPaymentRequest
from uuid import UUID

router = APIRouter()
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("uvicorn")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: OrderRequest):
    """
    Creates a new order. The order_created webhook is queued with it.
    """
    try:
        items_data = [
            {
                "product_id": str(item.product_id),
                "quantity": item.quantity
            }
            for item in request_data.items
        ]

        if not items_data:
            raise HTTPException(status_code=400, detail="Order must contain items.")

        order = await place_order(
            business_id=request_data.business_id,
            customer_id=request_data.customer_id,
            items=items_data
        )
        log.info(f"Order {order.id} created for business {request_data.business_id}.")
        data=OrderPlacementResponse(
            order_id=order.id,
            status=order.status,
            total_amount=order.total_amount,
            message="Order created."
        ).model_dump()
        return SuccessResponse(data=data)
    except ValueError as e:
        log.error(f"Value error creating order: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException as he:
        log.error(f"HTTP error creating order: {he.detail}")
        raise he
    except Exception as e:
        log.error(f"Error creating order: {e}")
        raise HTTPException(status_code=500, detail="Server failed to create order.")


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID):
    """Fetches details for a specific order."""
    try:
        order = await get_order_by_id(order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")

        items = [
            {
                "product_id": i.product_id,
                "name": i.product.name,
                "quantity": i.quantity,
                "price_at_time": str(i.price_at_time)
            }
            for i in order.items
        ]

        data=OrderDetailResponse(
            id=order.id,
            status=order.status,
            total_amount=order.total_amount,
            items=items,
            created_at=str(order.created_at),
            paid_at=str(order.paid_at) if order.paid_at else None
        ).model_dump()
        return SuccessResponse(data=data)
    except HTTPException:
        raise
    except Exception as e:
        log.error(f"Error fetching order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to fetch order details.")


@router.post("/{order_id}/mark-paid", response_model=SuccessResponse)
async def mark_paid_endpoint(order_id: UUID, payload: ManualPaymentRequest):
    """
    Records a payment taken outside the gateway and fires the order's webhooks
    immediately. Webhook problems are logged and do not affect this response.
    """
    try:
        order, changed = await mark_order_paid(
            order_id,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            enqueue_notifications=False
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        log.error(f"Value error marking order paid: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log.error(f"Error marking order paid: {e}")
        raise HTTPException(status_code=500, detail="Server failed to update payment.")

    deliveries = await send_order_webhooks_safely(order.id) if changed else []
    data=OrderPlacementResponse(
        order_id=order.id,
        status=order.status,
        total_amount=order.total_amount,
        message=f"Order marked as paid. {len(deliveries)} webhook(s) sent." if changed else "Order was already paid."
    ).model_dump()
    return SuccessResponse(data=data)
