from tortoise import fields, models
import uuid


class WebhookSubscription(models.Model):
    """
    A business's destination URL plus the event types it wants.
    A non-null product_id scopes product_purchased deliveries to that product only.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business_id = fields.UUIDField()
    url = fields.CharField(max_length=2048)
    on_order_created = fields.BooleanField(default=False)
    on_order_paid = fields.BooleanField(default=False)
    on_product_purchased = fields.BooleanField(default=False)
    product_id = fields.UUIDField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "business_webhooks"
        indexes = [
            ("business_id",),
        ]
