import logging
from tortoise import timezone
from tortoise.transactions import in_transaction
from typing import Any, Dict, List, Optional, Tuple
from decimal import Decimal
from app.models.order import Business, Customer, Order, OrderItem, OrderStatus, Product
from app.models.notification import EventType
from app.events.notification_emitter import enqueue_notification, emit_order_paid
from uuid import UUID

log = logging.getLogger("order_service")


async def place_order(business_id: UUID, customer_id: Optional[UUID], items: List[Dict]) -> Order:
    """
    Creates Order/OrderItem rows and the order_created notification atomically.
    Delivery of the notification is left to the dispatcher.
    """
    async with in_transaction() as conn:
        business = await Business.get_or_none(id=business_id).using_db(conn)
        if not business or not business.is_active:
            raise ValueError("Business not found or is inactive.")

        customer = None
        if customer_id:
            customer = await Customer.get_or_none(id=customer_id, business_id=business_id).using_db(conn)
            if not customer:
                raise ValueError(f"Customer {customer_id} not found.")

        product_ids = [UUID(str(it["product_id"])) for it in items]
        products = await Product.filter(id__in=product_ids, business_id=business_id, is_active=True).using_db(conn)
        product_map = {str(p.id): p for p in products}

        # 1. Create the Order header
        order = await Order.create(
            business=business,
            customer=customer,
            status=OrderStatus.PENDING,
            total_amount=Decimal("0"),
            using_db=conn
        )

        total = Decimal("0")
        for it in items:
            pid_str = str(it["product_id"])
            qty = int(it["quantity"])
            product = product_map.get(pid_str)

            if not product:
                raise ValueError(f"Product {pid_str} not found or inactive.")
            if qty <= 0:
                raise ValueError(f"Invalid quantity {qty} for product {product.name}.")

            total += product.price * qty

            # 2. Create Order Item line, price frozen at order time
            await OrderItem.create(
                order=order,
                product=product,
                quantity=qty,
                price_at_time=product.price,
                using_db=conn
            )

        order.total_amount = total
        await order.save(using_db=conn)

        # 3. ATOMIC EVENT: order_created notification (delivered by the dispatcher)
        await enqueue_notification(
            event_type=EventType.ORDER_CREATED,
            business_id=business.id,
            order_id=order.id,
            conn=conn
        )

    return order


async def get_order_by_id(order_id: UUID) -> Optional[Order]:
    """Fetches order details with items, including the product name/price."""
    return await Order.get_or_none(id=order_id).prefetch_related('items', 'items__product')


async def mark_order_paid(
    order_id: UUID,
    payment_method: str,
    payment_reference: str,
    transaction_id: Optional[str] = None,
    payment_details: Optional[Dict[str, Any]] = None,
    document_url: Optional[str] = None,
    enqueue_notifications: bool = True,
) -> Tuple[Order, bool]:
    """
    Marks the order completed and records payment metadata.

    With enqueue_notifications the order_paid / product_purchased tasks are
    written in the same transaction. A second confirmation for an already
    completed order is a no-op and queues nothing.
    Returns the order and whether this call changed it.
    """
    async with in_transaction() as conn:
        order = await Order.get_or_none(id=order_id).using_db(conn)
        if not order:
            raise LookupError(f"Order {order_id} not found")

        if order.status == OrderStatus.COMPLETED:
            log.info(f"Order {order_id} already completed, ignoring duplicate payment confirmation.")
            return order, False
        if order.status == OrderStatus.CANCELLED:
            raise ValueError(f"Order {order_id} is cancelled and cannot be paid.")

        # Conditional update: of two concurrent confirmations only one moves the order
        now = timezone.now()
        updated = await Order.filter(id=order_id, status=OrderStatus.PENDING).using_db(conn).update(
            status=OrderStatus.COMPLETED,
            payment_method=payment_method,
            payment_reference=payment_reference,
            transaction_id=transaction_id,
            payment_details=payment_details,
            document_url=document_url,
            paid_at=now,
            updated_at=now,
        )
        if not updated:
            log.info(f"Order {order_id} was completed concurrently, ignoring duplicate payment confirmation.")
            return order, False
        await order.refresh_from_db(using_db=conn)

        if enqueue_notifications:
            await emit_order_paid(order.id, order.business_id, conn=conn)

    log.info(f"Order {order_id} marked as paid via {payment_reference}.")
    return order, True
