from enum import Enum
from tortoise import fields, models
import uuid


class EventType(str, Enum):
    ORDER_CREATED = "order_created"
    ORDER_PAID = "order_paid"
    PRODUCT_PURCHASED = "product_purchased"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight" # Claimed by exactly one dispatcher
    COMPLETED = "completed" # Terminal
    FAILED = "failed" # Terminal


# Subscription flag matching each event type
EVENT_FLAGS = {
    EventType.ORDER_CREATED: "on_order_created",
    EventType.ORDER_PAID: "on_order_paid",
    EventType.PRODUCT_PURCHASED: "on_product_purchased",
}


class NotificationTask(models.Model):
    """
    Queued outbound notification for one business event.
    The payload is captured when the task is enqueued and never re-derived.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business_id = fields.UUIDField()
    event_type = fields.CharEnumField(EventType, max_length=32)
    order_id = fields.UUIDField()
    product_id = fields.UUIDField(null=True)
    payload = fields.JSONField()
    status = fields.CharEnumField(NotificationStatus, max_length=16, default=NotificationStatus.PENDING)
    attempts = fields.IntField(default=0) # Failed delivery passes
    last_attempt_at = fields.DatetimeField(null=True)
    last_error = fields.TextField(null=True)
    claimed_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "webhook_queue"
        indexes = [
            ("status", "created_at"),
            ("order_id",),
        ]
