"""Data models for the order orchestrator."""

from orderflow.models.actor import Actor, ActorRole
from orderflow.models.catalog import MenuItem
from orderflow.models.order import (
    CustomerDetails,
    HistoryEntry,
    ItemRequest,
    KitchenStatus,
    ModificationEntry,
    Order,
    OrderChannel,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    RefundRecord,
    RefundStatus,
    Review,
    VoidedPayment,
)
from orderflow.models.payment import PayHereStatusCode, PaymentNotification, WebhookAck
from orderflow.models.task import (
    QualityChecks,
    Task,
    TaskHistoryEntry,
    TaskPriority,
    TaskStatus,
    TaskType,
)

__all__ = [
    # Actor
    "Actor",
    "ActorRole",
    # Catalog
    "MenuItem",
    # Order
    "CustomerDetails",
    "HistoryEntry",
    "ItemRequest",
    "KitchenStatus",
    "ModificationEntry",
    "Order",
    "OrderChannel",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "RefundRecord",
    "RefundStatus",
    "Review",
    "VoidedPayment",
    # Payment
    "PayHereStatusCode",
    "PaymentNotification",
    "WebhookAck",
    # Task
    "QualityChecks",
    "Task",
    "TaskHistoryEntry",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
]
