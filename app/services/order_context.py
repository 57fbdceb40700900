from dataclasses import dataclass, field
from typing import Any, List, Optional
from uuid import UUID

from app.models.order import Customer, Order, OrderItem


class OrderNotFound(LookupError):
    pass


class CustomerNotFound(LookupError):
    pass


@dataclass
class OrderContext:
    """Current state of an order plus everything a payload needs from it."""
    order: Order
    customer: Optional[Customer] = None
    items: List[OrderItem] = field(default_factory=list)

    def item_for(self, product_id: UUID) -> Optional[OrderItem]:
        for item in self.items:
            if str(item.product_id) == str(product_id):
                return item
        return None


async def load_order_context(order_id: UUID, conn: Any = None, require_customer: bool = True) -> OrderContext:
    """
    Reads the order, its customer and its items (with products).
    Raises OrderNotFound / CustomerNotFound (both LookupError) when rows are missing;
    with require_customer=False a missing customer is left as None instead.
    """
    order = await Order.get_or_none(id=order_id).using_db(conn)
    if not order:
        raise OrderNotFound(f"Order {order_id} not found")

    customer = None
    if order.customer_id:
        customer = await Customer.get_or_none(id=order.customer_id).using_db(conn)
        if not customer and require_customer:
            raise CustomerNotFound(f"Customer {order.customer_id} for order {order_id} not found")

    items = await OrderItem.filter(order_id=order.id).prefetch_related("product").using_db(conn)
    return OrderContext(order=order, customer=customer, items=list(items))
