import logging
from typing import Any, List, Optional
from uuid import UUID

from app.events.payloads import build_event_payload, default_order_section, order_section
from app.models.notification import EventType, NotificationStatus, NotificationTask
from app.models.order import Product
from app.services.order_context import CustomerNotFound, OrderNotFound, load_order_context

log = logging.getLogger("notification_emitter")


async def enqueue_notification(
    event_type: EventType,
    business_id: UUID,
    order_id: UUID,
    product_id: Optional[UUID] = None,
    conn: Any = None
) -> Optional[NotificationTask]:
    """
    Captures the payload for a business event and queues it for delivery.

    CRITICAL: Passing 'conn' ensures the task is created atomically with the business data.
    Returns None (and queues nothing) when the context needed for the payload is missing.
    """
    event_type = EventType(event_type)
    product = None

    if event_type == EventType.PRODUCT_PURCHASED:
        if product_id is None:
            log.error(f"Refusing to enqueue {event_type.value} for order {order_id}: no product given.")
            return None
        product = await Product.get_or_none(id=product_id).using_db(conn)
        if not product:
            log.error(f"Product {product_id} not found, {event_type.value} for order {order_id} not queued.")
            return None

    try:
        context = await load_order_context(order_id, conn=conn)
    except CustomerNotFound as e:
        log.error(f"Aborting {event_type.value} notification: {e}")
        return None
    except OrderNotFound as e:
        if product is None:
            log.error(f"Aborting {event_type.value} notification: {e}")
            return None
        # Only the order is missing: deliver with a minimal order record
        log.warning(f"{e}; using a default order record for {event_type.value}.")
        payload = build_event_payload(
            event_type, business_id, order_id,
            order=default_order_section(order_id, product.price),
            product=product,
        )
    else:
        payload = build_event_payload(
            event_type, business_id, order_id,
            order=order_section(context.order),
            customer=context.customer,
            items=context.items,
            product=product,
            order_item=context.item_for(product_id) if product_id else None,
        )

    task = await NotificationTask.create(
        business_id=business_id,
        event_type=event_type,
        order_id=order_id,
        product_id=product_id,
        payload=payload,
        status=NotificationStatus.PENDING,
        attempts=0,
        using_db=conn
    )
    log.info(f"Queued {event_type.value} notification {task.id} for order {order_id}.")
    return task


async def emit_order_paid(order_id: UUID, business_id: UUID, conn: Any = None) -> List[NotificationTask]:
    """Queues one order_paid task plus one product_purchased task per distinct product on the order."""
    tasks = []
    task = await enqueue_notification(EventType.ORDER_PAID, business_id, order_id, conn=conn)
    if task:
        tasks.append(task)

    context = await load_order_context(order_id, conn=conn)
    seen = set()
    for item in context.items:
        if item.product_id in seen:
            continue
        seen.add(item.product_id)
        task = await enqueue_notification(
            EventType.PRODUCT_PURCHASED, business_id, order_id, product_id=item.product_id, conn=conn
        )
        if task:
            tasks.append(task)
    return tasks
