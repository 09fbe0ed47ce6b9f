"""Guest and staff notification delivery.

Notifications are fire-and-forget: a failed delivery is logged and never
turns an accepted state change into an error.
"""

import json
from typing import Any, Protocol

from orderflow.state.manager import StateManager
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)

MANAGER_AUDIENCE = "food-manager"
KITCHEN_AUDIENCE = "food-kitchen"


def staff_audience(staff_id: str) -> str:
    return f"staff-{staff_id}"


def guest_audience(guest_id: str) -> str:
    return f"user-{guest_id}"


class NotificationGateway(Protocol):
    """Transport for real-time guest/staff notifications."""

    async def notify(self, audience: str, event: str, payload: dict[str, Any]) -> None:
        ...


class AudienceSender(Protocol):
    async def broadcast(self, audience: str, message: dict[str, Any]) -> None:
        ...


class LoggingNotificationGateway:
    """Writes notifications to the log only."""

    async def notify(self, audience: str, event: str, payload: dict[str, Any]) -> None:
        logger.info("notification", audience=audience, notification_event=event, payload=payload)


class RedisNotificationGateway:
    """Publishes notifications on a Redis channel per audience."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    async def notify(self, audience: str, event: str, payload: dict[str, Any]) -> None:
        message = json.dumps({"event": event, "payload": payload}, default=str)
        await self.state.publish(f"notifications:{audience}", message)


class WebSocketNotificationGateway:
    """Pushes notifications to dashboards connected over WebSocket."""

    def __init__(self, connections: AudienceSender):
        self.connections = connections

    async def notify(self, audience: str, event: str, payload: dict[str, Any]) -> None:
        await self.connections.broadcast(
            audience,
            {"type": "notification", "event": event, "payload": payload},
        )


async def notify_safely(
    gateway: NotificationGateway,
    audience: str,
    event: str,
    payload: dict[str, Any],
) -> bool:
    """Deliver a notification, logging and swallowing transport failures."""
    try:
        await gateway.notify(audience, event, payload)
        return True
    except Exception as e:
        logger.warning(
            "notification_failed",
            audience=audience,
            notification_event=event,
            error=str(e),
        )
        return False
