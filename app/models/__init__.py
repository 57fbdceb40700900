# app/models/__init__.py
from .order import Business, Customer, Product, Order, OrderItem, OrderStatus
from .subscription import WebhookSubscription
from .notification import NotificationTask, NotificationStatus, EventType
from .delivery_log import DeliveryLogEntry

# Export all models
__all__ = [
    "Business",
    "Customer",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "WebhookSubscription",
    "NotificationTask",
    "NotificationStatus",
    "EventType",
    "DeliveryLogEntry",
]
