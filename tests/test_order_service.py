import pytest
from decimal import Decimal
from uuid import uuid4

from app.models.notification import EventType, NotificationTask
from app.models.order import Order, OrderStatus, Product
from app.services.order_service import get_order_by_id, mark_order_paid, place_order


class TestPlaceOrder:

    @pytest.mark.asyncio
    async def test_order_and_order_created_task_written_together(self, shop):
        order = await place_order(
            shop.business.id,
            shop.customer.id,
            [{"product_id": shop.mat.id, "quantity": 1}, {"product_id": shop.block.id, "quantity": 2}],
        )

        assert order.status == OrderStatus.PENDING
        assert order.total_amount == Decimal("191.00")

        tasks = await NotificationTask.filter(order_id=order.id)
        assert len(tasks) == 1
        assert tasks[0].event_type == EventType.ORDER_CREATED
        assert tasks[0].payload["order"]["total_amount"] == "191.00"

    @pytest.mark.asyncio
    async def test_unknown_product_rolls_back_everything(self, shop):
        orders_before = await Order.all().count()

        with pytest.raises(ValueError):
            await place_order(shop.business.id, shop.customer.id, [{"product_id": uuid4(), "quantity": 1}])

        assert await Order.all().count() == orders_before
        assert await NotificationTask.all().count() == 0

    @pytest.mark.asyncio
    async def test_inactive_product_rejected(self, shop):
        await Product.filter(id=shop.mat.id).update(is_active=False)

        with pytest.raises(ValueError, match="not found or inactive"):
            await place_order(shop.business.id, None, [{"product_id": shop.mat.id, "quantity": 1}])

    @pytest.mark.asyncio
    async def test_get_order_prefetches_items(self, shop):
        order = await get_order_by_id(shop.order.id)

        assert {item.product.name for item in order.items} == {"Yoga Mat", "Yoga Block"}


class TestMarkOrderPaid:

    @pytest.mark.asyncio
    async def test_completes_order_and_queues_notifications(self, shop):
        order, changed = await mark_order_paid(
            shop.order.id, payment_method="credit_card", payment_reference="Cardcom", transaction_id="778899"
        )

        assert changed is True
        assert order.status == OrderStatus.COMPLETED
        assert order.paid_at is not None
        assert order.transaction_id == "778899"

        events = sorted(t.event_type.value for t in await NotificationTask.filter(order_id=shop.order.id))
        assert events == ["order_paid", "product_purchased", "product_purchased"]

    @pytest.mark.asyncio
    async def test_duplicate_confirmation_is_a_no_op(self, shop):
        await mark_order_paid(shop.order.id, "credit_card", "Cardcom")
        queued = await NotificationTask.all().count()

        order, changed = await mark_order_paid(shop.order.id, "credit_card", "Cardcom")

        assert changed is False
        assert order.status == OrderStatus.COMPLETED
        assert await NotificationTask.all().count() == queued

    @pytest.mark.asyncio
    async def test_direct_path_queues_nothing(self, shop):
        _, changed = await mark_order_paid(shop.order.id, "cash", "manual", enqueue_notifications=False)

        assert changed is True
        assert await NotificationTask.all().count() == 0

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_be_paid(self, shop):
        await Order.filter(id=shop.order.id).update(status=OrderStatus.CANCELLED)

        with pytest.raises(ValueError):
            await mark_order_paid(shop.order.id, "cash", "manual")

    @pytest.mark.asyncio
    async def test_unknown_order(self, db):
        with pytest.raises(LookupError):
            await mark_order_paid(uuid4(), "cash", "manual")
