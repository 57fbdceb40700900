from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PENDING = "pending"  # Created, waiting for payment
    COMPLETED = "completed" # Payment confirmed
    CANCELLED = "cancelled"


class Business(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    is_active = fields.BooleanField(default=True)

    class Meta:
        table = "businesses"


class Customer(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="customers")
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255, null=True)
    phone = fields.CharField(max_length=64, null=True)
    contact_id = fields.CharField(max_length=128, null=True) # CRM contact reference

    class Meta:
        table = "customers"
        indexes = [
            ("business_id",),
            ("contact_id",),
        ]


class Product(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="products")
    name = fields.CharField(max_length=255)
    price = fields.DecimalField(max_digits=12, decimal_places=2)
    sku = fields.CharField(max_length=64, null=True)
    currency = fields.CharField(max_length=3, default="ILS")
    is_active = fields.BooleanField(default=True)

    class Meta:
        table = "products"
        indexes = [
            ("business_id",),
            ("business_id", "is_active"),
        ]


class Order(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="orders")
    customer = fields.ForeignKeyField("models.Customer", related_name="orders", null=True)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.PENDING)
    total_amount = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    currency = fields.CharField(max_length=3, default="ILS")
    payment_method = fields.CharField(max_length=64, null=True)
    payment_reference = fields.CharField(max_length=128, null=True)
    transaction_id = fields.CharField(max_length=128, null=True)
    payment_details = fields.JSONField(null=True)
    document_url = fields.CharField(max_length=1024, null=True)
    paid_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        indexes = [
            ("business_id",),
            ("status",),
            ("customer_id",),
            ("created_at",),
        ]


class OrderItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="items")
    product = fields.ForeignKeyField("models.Product", related_name="order_items")
    quantity = fields.IntField()
    price_at_time = fields.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        table = "order_items"
        indexes = [
            ("order_id",),
            ("product_id",),
        ]
