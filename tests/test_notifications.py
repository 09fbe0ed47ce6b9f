"""Tests for notification transports."""

import json

import pytest

from orderflow.state.manager import StateManager
from orderflow.workflow.notifications import (
    LoggingNotificationGateway,
    RedisNotificationGateway,
    WebSocketNotificationGateway,
    notify_safely,
)
from tests.helpers import FailingNotificationGateway, RecordingNotificationGateway


class RecordingSender:
    def __init__(self) -> None:
        self.messages: list[tuple[str, dict]] = []

    async def broadcast(self, audience: str, message: dict) -> None:
        self.messages.append((audience, message))


@pytest.mark.asyncio
async def test_notify_safely_swallows_transport_errors() -> None:
    delivered = await notify_safely(FailingNotificationGateway(), "food-manager", "newFoodOrder", {})

    assert delivered is False


@pytest.mark.asyncio
async def test_notify_safely_delivers() -> None:
    gateway = RecordingNotificationGateway()

    assert await notify_safely(gateway, "user-1", "foodStatusUpdate", {"orderId": "o-1"}) is True
    assert gateway.sent == [("user-1", "foodStatusUpdate", {"orderId": "o-1"})]


@pytest.mark.asyncio
async def test_logging_gateway_delivers() -> None:
    gateway = LoggingNotificationGateway()

    await gateway.notify("food-kitchen", "newFoodTask", {"taskId": "t-1"})
    assert await notify_safely(gateway, "food-kitchen", "newFoodTask", {"taskId": "t-1"}) is True


@pytest.mark.asyncio
async def test_websocket_gateway_wraps_event() -> None:
    sender = RecordingSender()

    await WebSocketNotificationGateway(sender).notify("staff-7", "foodTaskAssigned", {"taskId": "t-1"})

    assert sender.messages == [
        ("staff-7", {"type": "notification", "event": "foodTaskAssigned", "payload": {"taskId": "t-1"}})
    ]


@pytest.mark.asyncio
async def test_redis_gateway_publishes_per_audience(state_manager: StateManager) -> None:
    pubsub = state_manager.redis_client.pubsub()
    await pubsub.subscribe("notifications:food-manager")
    await pubsub.get_message(timeout=1.0)  # subscribe confirmation

    await RedisNotificationGateway(state_manager).notify("food-manager", "newFoodOrder", {"orderId": "o-1"})

    message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
    assert json.loads(message["data"]) == {"event": "newFoodOrder", "payload": {"orderId": "o-1"}}
    await pubsub.aclose()
