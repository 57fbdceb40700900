import importlib
import json
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from tortoise import Tortoise

from app.core import config
from app.core.db import MODELS_MODULES
from app.models.order import Business, Customer, Order, OrderItem, Product
from app.models.subscription import WebhookSubscription


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def shop(db):
    """A business with one customer, two products and a pending order for both."""
    business = await Business.create(name="Demo Studio")
    customer = await Customer.create(
        business=business, name="Dana Levi", email="dana@example.com", phone="050-1234567", contact_id="crm-123"
    )
    mat = await Product.create(business=business, name="Yoga Mat", price=Decimal("120.00"), sku="MAT-1")
    block = await Product.create(business=business, name="Yoga Block", price=Decimal("35.50"), sku="BLK-1")
    order = await Order.create(business=business, customer=customer, total_amount=Decimal("275.50"))
    await OrderItem.create(order=order, product=mat, quantity=2, price_at_time=Decimal("120.00"))
    await OrderItem.create(order=order, product=block, quantity=1, price_at_time=Decimal("35.50"))
    return SimpleNamespace(business=business, customer=customer, mat=mat, block=block, order=order)


async def subscribe(business, url, **flags) -> WebhookSubscription:
    return await WebhookSubscription.create(business_id=business.id, url=url, **flags)


@pytest.fixture
def subscribe_to():
    return subscribe


class Receiver:
    """
    Fake webhook receiver for httpx.MockTransport.

    `scripts` maps a URL to the statuses it answers in order (last one repeats);
    an exception instance in the script is raised instead of answering.
    """

    def __init__(self, scripts=None, default=200):
        self.scripts = {url: list(steps) for url, steps in (scripts or {}).items()}
        self.default = default
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        steps = self.scripts.get(str(request.url))
        step = self.default
        if steps:
            step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return httpx.Response(step, json={"received": step < 400})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def to(self, url):
        return [r for r in self.requests if str(r.url) == url]

    @staticmethod
    def body(request: httpx.Request):
        return json.loads(request.content)


@pytest.fixture
def receiver():
    return Receiver()


@pytest.fixture
def reload_config(monkeypatch):
    """Re-reads app.core.config from a patched environment; the real module is restored afterwards."""
    def _reload(**env):
        for name, value in env.items():
            if value is None:
                monkeypatch.delenv(name, raising=False)
            else:
                monkeypatch.setenv(name, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)
