"""Pytest configuration and fixtures."""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from orderflow.api.routes import get_app_settings, get_notifier, get_state
from orderflow.config import Settings
from orderflow.main import app
from orderflow.models.catalog import MenuItem
from orderflow.models.order import ItemRequest, Order, OrderChannel
from orderflow.state.catalog import CatalogRepository
from orderflow.state.manager import StateManager
from orderflow.state.orders import OrderRepository
from orderflow.state.tasks import TaskRepository
from orderflow.workflow.lifecycle import OrderLifecycle
from orderflow.workflow.pricing import OrderPricer, PricingPolicy
from orderflow.workflow.task_queue import TaskQueue
from orderflow.workflow.webhooks import PaymentWebhookHandler
from tests.helpers import GUEST_ID, MERCHANT_ID, MERCHANT_SECRET, RecordingNotificationGateway


@pytest.fixture
def settings() -> Settings:
    """Test settings with a known pricing policy and merchant secret."""
    return Settings(
        redis_url="redis://localhost:6379/15",
        tax_rate=Decimal("0.10"),
        discount_rate=Decimal("0.00"),
        delivery_fee=Decimal("0.00"),
        currency="LKR",
        payhere_merchant_id=MERCHANT_ID,
        payhere_merchant_secret=MERCHANT_SECRET,
        notification_transport="log",
    )


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[FakeRedis, None]:
    """In-memory Redis shared by every connection of one test."""
    client = FakeRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def state_manager(redis_client: FakeRedis) -> StateManager:
    """Create a test state manager."""
    return StateManager(redis_client=redis_client)


@pytest.fixture
def notifier() -> RecordingNotificationGateway:
    return RecordingNotificationGateway()


@pytest_asyncio.fixture
async def catalog(state_manager: StateManager) -> CatalogRepository:
    """Catalog with a handful of priced items."""
    repository = CatalogRepository(state_manager)
    for item in [
        MenuItem(item_id="burger", name="Burger", category="mains", price=Decimal("500.00")),
        MenuItem(item_id="fries", name="Fries", category="sides", price=Decimal("250.00")),
        MenuItem(item_id="tea", name="Ceylon Tea", category="drinks", price=Decimal("100.00")),
        MenuItem(
            item_id="lobster",
            name="Lobster",
            category="specials",
            price=Decimal("6000.00"),
            is_available=False,
        ),
    ]:
        await repository.put_item(item)
    return repository


@pytest.fixture
def task_repository(state_manager: StateManager) -> TaskRepository:
    return TaskRepository(state_manager)


@pytest.fixture
def order_repository(state_manager: StateManager) -> OrderRepository:
    return OrderRepository(state_manager)


@pytest.fixture
def task_queue(
    task_repository: TaskRepository,
    notifier: RecordingNotificationGateway,
) -> TaskQueue:
    return TaskQueue(task_repository, notifier)


@pytest.fixture
def lifecycle(
    order_repository: OrderRepository,
    task_queue: TaskQueue,
    catalog: CatalogRepository,
    notifier: RecordingNotificationGateway,
    settings: Settings,
) -> OrderLifecycle:
    pricer = OrderPricer(catalog, PricingPolicy.from_settings(settings))
    return OrderLifecycle(order_repository, task_queue, pricer, notifier)


@pytest.fixture
def webhook_handler(lifecycle: OrderLifecycle, settings: Settings) -> PaymentWebhookHandler:
    return PaymentWebhookHandler(lifecycle, settings)


# Sample data fixtures


@pytest_asyncio.fixture
async def pending_order(lifecycle: OrderLifecycle) -> Order:
    """Two burgers: subtotal 1000, tax 100, total 1100."""
    return await lifecycle.place_order(
        GUEST_ID,
        [ItemRequest(item_id="burger", quantity=2)],
        channel=OrderChannel.DINE_IN,
    )


@pytest_asyncio.fixture
async def confirmed_order(lifecycle: OrderLifecycle, pending_order: Order) -> Order:
    return await lifecycle.confirm(pending_order.id, "pay-1", amount=pending_order.total)


@pytest_asyncio.fixture
async def preparing_order(lifecycle: OrderLifecycle, confirmed_order: Order) -> Order:
    return await lifecycle.advance_kitchen_status(confirmed_order.id, "preparing", actor_id="chef-1")


@pytest_asyncio.fixture
async def delivered_order(lifecycle: OrderLifecycle, preparing_order: Order) -> Order:
    await lifecycle.advance_kitchen_status(preparing_order.id, "ready", actor_id="chef-1")
    return await lifecycle.advance_kitchen_status(preparing_order.id, "delivered", actor_id="runner-1")


@pytest_asyncio.fixture
async def test_client(
    state_manager: StateManager,
    notifier: RecordingNotificationGateway,
    settings: Settings,
    catalog: CatalogRepository,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client over the in-memory store."""

    async def override_state() -> StateManager:
        return state_manager

    async def override_notifier() -> RecordingNotificationGateway:
        return notifier

    app.dependency_overrides[get_state] = override_state
    app.dependency_overrides[get_notifier] = override_notifier
    app.dependency_overrides[get_app_settings] = lambda: settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
