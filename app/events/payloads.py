from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.models.notification import EventType
from app.models.order import Customer, Order, OrderItem, Product

CENTS = Decimal("0.01")


def _money(value: Any) -> Optional[str]:
    # Decimals are sent as fixed two-place strings so receivers never see float rounding
    return None if value is None else str(Decimal(value).quantize(CENTS))


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, datetime) else str(value)


def order_section(order: Order) -> Dict[str, Any]:
    return {
        "id": str(order.id),
        "total_amount": _money(order.total_amount),
        "status": getattr(order.status, "value", order.status),
        "created_at": _iso(order.created_at),
        "paid_at": _iso(order.paid_at),
    }


def default_order_section(order_id: UUID, total_amount: Any) -> Dict[str, Any]:
    """Stand-in order record used when only the order lookup failed."""
    return {
        "id": str(order_id),
        "total_amount": _money(total_amount),
        "status": "unknown",
        "created_at": datetime.now(timezone.utc).isoformat(),
        "paid_at": None,
    }


def customer_section(customer: Customer) -> Dict[str, Any]:
    return {
        "id": str(customer.id),
        "name": customer.name,
        "email": customer.email,
        "phone": customer.phone,
        "contact_id": customer.contact_id,
    }


def product_section(product: Product) -> Dict[str, Any]:
    return {
        "id": str(product.id),
        "name": product.name,
        "price": _money(product.price),
        "sku": product.sku,
        "currency": product.currency or "ILS",
    }


def order_item_section(item: OrderItem) -> Dict[str, Any]:
    return {
        "quantity": item.quantity,
        "price_at_time": _money(item.price_at_time),
    }


def build_event_payload(
    event_type: EventType,
    business_id: UUID,
    order_id: UUID,
    order: Dict[str, Any],
    customer: Optional[Customer] = None,
    items: Optional[List[OrderItem]] = None,
    product: Optional[Product] = None,
    order_item: Optional[OrderItem] = None,
) -> Dict[str, Any]:
    """
    Assembles the JSON document delivered to subscribers.

    `order` is an already-rendered order section (see order_section /
    default_order_section). Items must have their product prefetched.
    Product-scoped events carry product and order_item sections as well.
    """
    event_type = EventType(event_type)
    payload: Dict[str, Any] = {
        "event": event_type.value,
        "order_id": str(order_id),
        "business_id": str(business_id),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "order": order,
    }

    if customer is not None:
        payload["customer"] = customer_section(customer)

    if items is not None:
        payload["order_items"] = [
            {
                "product_id": str(item.product_id),
                "product_name": item.product.name if item.product else None,
                "quantity": item.quantity,
                "price_at_time": _money(item.price_at_time),
            }
            for item in items
        ]

    if event_type == EventType.PRODUCT_PURCHASED and product is not None:
        payload["product_id"] = str(product.id)
        payload["product"] = product_section(product)
        if order_item is not None:
            payload["order_item"] = order_item_section(order_item)

    return payload
