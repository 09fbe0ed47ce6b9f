"""Order lifecycle, kitchen task queue and payment webhook services."""

from orderflow.workflow.lifecycle import OrderLifecycle
from orderflow.workflow.notifications import (
    LoggingNotificationGateway,
    NotificationGateway,
    RedisNotificationGateway,
    WebSocketNotificationGateway,
    notify_safely,
)
from orderflow.workflow.pricing import OrderPricer, PricingPolicy
from orderflow.workflow.task_queue import TaskQueue
from orderflow.workflow.webhooks import PaymentWebhookHandler

__all__ = [
    "OrderLifecycle",
    "TaskQueue",
    "PaymentWebhookHandler",
    "OrderPricer",
    "PricingPolicy",
    "NotificationGateway",
    "LoggingNotificationGateway",
    "RedisNotificationGateway",
    "WebSocketNotificationGateway",
    "notify_safely",
]
