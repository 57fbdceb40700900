from tortoise import fields, models
import uuid


class DeliveryLogEntry(models.Model):
    """Append-only record of a single HTTP delivery attempt to one subscription."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    subscription = fields.ForeignKeyField("models.WebhookSubscription", related_name="deliveries")
    task = fields.ForeignKeyField("models.NotificationTask", related_name="deliveries", null=True) # Null for direct sends
    order_id = fields.UUIDField()
    product_id = fields.UUIDField(null=True)
    event_type = fields.CharField(max_length=32)
    request_payload = fields.JSONField()
    response_status = fields.IntField(default=0) # 0 when no response was received
    response_body = fields.TextField(null=True)
    success = fields.BooleanField(default=False)
    sent_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "webhook_logs"
        indexes = [
            ("subscription_id", "sent_at"),
            ("task_id",),
        ]
