import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from unittest.mock import patch, AsyncMock, MagicMock
from uuid import uuid4

from app.main import app
from app.models.order import OrderStatus


@pytest.fixture
def client():
    return TestClient(app)


def mock_order(status=OrderStatus.PENDING):
    order = MagicMock()
    order.id = uuid4()
    order.status = status
    order.total_amount = Decimal("275.50")
    order.created_at = "2024-05-01T10:30:00"
    order.paid_at = None
    order.items = []
    return order


class TestOrderRoutes:
    def test_create_order_success(self, client):
        """Order creation returns 201 with the pending order"""
        with patch('app.api.v1.orders.place_order', new_callable=AsyncMock) as mock_place_order:
            mock_place_order.return_value = mock_order()

            order_data = {
                "business_id": str(uuid4()),
                "customer_id": str(uuid4()),
                "items": [{"product_id": str(uuid4()), "quantity": 1}]
            }

            response = client.post("/api/v1/orders", json=order_data)
            assert response.status_code == 201
            assert response.json()["data"]["status"] == "pending"

    def test_create_order_empty_items(self, client):
        """Orders without items are rejected"""
        order_data = {
            "business_id": str(uuid4()),
            "items": []
        }

        response = client.post("/api/v1/orders", json=order_data)
        assert response.status_code == 400

    def test_create_order_unknown_product(self, client):
        """Validation failures from the service surface as 400"""
        with patch('app.api.v1.orders.place_order', new_callable=AsyncMock) as mock_place_order:
            mock_place_order.side_effect = ValueError("Product not found or inactive.")

            response = client.post("/api/v1/orders", json={
                "business_id": str(uuid4()),
                "items": [{"product_id": str(uuid4()), "quantity": 1}]
            })
            assert response.status_code == 400
            assert response.json()["error"]["message"] == "Product not found or inactive."

    def test_create_order_rejects_zero_quantity(self, client):
        response = client.post("/api/v1/orders", json={
            "business_id": str(uuid4()),
            "items": [{"product_id": str(uuid4()), "quantity": 0}]
        })
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_get_order_success(self, client):
        """Order retrieval"""
        with patch('app.api.v1.orders.get_order_by_id', new_callable=AsyncMock) as mock_get_order:
            order = mock_order()
            mock_get_order.return_value = order

            response = client.get(f"/api/v1/orders/{order.id}")
            assert response.status_code == 200
            assert response.json()["data"]["id"] == str(order.id)

    def test_get_order_not_found(self, client):
        with patch('app.api.v1.orders.get_order_by_id', new_callable=AsyncMock) as mock_get_order:
            mock_get_order.return_value = None

            response = client.get(f"/api/v1/orders/{uuid4()}")
            assert response.status_code == 404


class TestMarkPaidRoute:
    def test_mark_paid_sends_webhooks_directly(self, client):
        order = mock_order(OrderStatus.COMPLETED)
        with patch('app.api.v1.orders.mark_order_paid', new_callable=AsyncMock) as mock_mark_paid, \
             patch('app.api.v1.orders.send_order_webhooks_safely', new_callable=AsyncMock) as mock_send:
            mock_mark_paid.return_value = (order, True)
            mock_send.return_value = [MagicMock(), MagicMock()]

            response = client.post(f"/api/v1/orders/{order.id}/mark-paid", json={})

            assert response.status_code == 200
            assert response.json()["data"]["status"] == "completed"
            assert "2 webhook(s) sent" in response.json()["data"]["message"]
            assert mock_mark_paid.call_args.kwargs["enqueue_notifications"] is False
            mock_send.assert_awaited_once_with(order.id)

    def test_already_paid_sends_nothing(self, client):
        order = mock_order(OrderStatus.COMPLETED)
        with patch('app.api.v1.orders.mark_order_paid', new_callable=AsyncMock) as mock_mark_paid, \
             patch('app.api.v1.orders.send_order_webhooks_safely', new_callable=AsyncMock) as mock_send:
            mock_mark_paid.return_value = (order, False)

            response = client.post(f"/api/v1/orders/{order.id}/mark-paid", json={})

            assert response.status_code == 200
            assert response.json()["data"]["message"] == "Order was already paid."
            mock_send.assert_not_called()

    def test_unknown_order_is_404(self, client):
        with patch('app.api.v1.orders.mark_order_paid', new_callable=AsyncMock) as mock_mark_paid:
            mock_mark_paid.side_effect = LookupError("Order not found")

            response = client.post(f"/api/v1/orders/{uuid4()}/mark-paid", json={})
            assert response.status_code == 404

    def test_cancelled_order_is_400(self, client):
        with patch('app.api.v1.orders.mark_order_paid', new_callable=AsyncMock) as mock_mark_paid:
            mock_mark_paid.side_effect = ValueError("Order is cancelled and cannot be paid.")

            response = client.post(f"/api/v1/orders/{uuid4()}/mark-paid", json={"payment_method": "cash"})
            assert response.status_code == 400
