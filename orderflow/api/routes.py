"""API routes for orders, kitchen tasks and payment notifications."""

from decimal import Decimal
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from orderflow.api.websocket import manager
from orderflow.config import Settings, get_settings
from orderflow.errors import ForbiddenError, InvalidSignatureError, InvalidStatusError
from orderflow.models.actor import Actor, ActorRole
from orderflow.models.order import CustomerDetails, ItemRequest, Order, OrderChannel
from orderflow.models.payment import PaymentNotification
from orderflow.models.task import QualityChecks, Task
from orderflow.state.catalog import CatalogRepository
from orderflow.state.manager import StateManager, get_state_manager
from orderflow.state.orders import OrderRepository
from orderflow.state.tasks import TaskRepository
from orderflow.utils.logging import get_logger
from orderflow.workflow.lifecycle import OrderLifecycle, refund_message
from orderflow.workflow.notifications import (
    LoggingNotificationGateway,
    NotificationGateway,
    RedisNotificationGateway,
    WebSocketNotificationGateway,
)
from orderflow.workflow.pricing import OrderPricer, PricingPolicy
from orderflow.workflow.task_queue import SYSTEM_ACTOR, TaskQueue
from orderflow.workflow.webhooks import PaymentWebhookHandler

logger = get_logger(__name__)

router = APIRouter()


# Request Models


class CamelModel(BaseModel):
    """Accepts the dashboard's camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderLine(CamelModel):
    item_id: str
    quantity: int = Field(default=1, ge=1)

    def to_request(self) -> ItemRequest:
        return ItemRequest(item_id=self.item_id, quantity=self.quantity)


class PlaceOrderRequest(CamelModel):
    """Guest checkout."""

    items: list[OrderLine]
    channel: OrderChannel = OrderChannel.DINE_IN
    customer: CustomerDetails | None = None
    notes: str | None = None


class ConfirmOrderRequest(CamelModel):
    payment_id: str
    transaction_id: str | None = None
    amount: Decimal | None = None


class AssignTaskRequest(CamelModel):
    staff_id: str
    task_type: str


class UpdateOrderStatusRequest(CamelModel):
    kitchen_status: str | None = None
    status: str | None = None
    notes: str | None = None


class ModifyOrderRequest(CamelModel):
    items: list[OrderLine]
    notes: str | None = None


class CancelOrderRequest(CamelModel):
    reason: str | None = None


class ReviewRequest(CamelModel):
    rating: int
    comment: str | None = None


class ModerateReviewRequest(CamelModel):
    is_visible: bool | None = None
    flagged: bool | None = None


class TaskStatusRequest(CamelModel):
    status: str
    note: str | None = None


# Dependencies


async def get_state() -> StateManager:
    """Get the shared state manager."""
    return await get_state_manager()


def get_app_settings() -> Settings:
    return get_settings()


async def get_notifier(
    state: StateManager = Depends(get_state),
    settings: Settings = Depends(get_app_settings),
) -> NotificationGateway:
    """Notification transport selected by configuration."""
    if settings.notification_transport == "redis":
        return RedisNotificationGateway(state)
    if settings.notification_transport == "websocket":
        return WebSocketNotificationGateway(manager)
    return LoggingNotificationGateway()


async def get_task_queue(
    state: StateManager = Depends(get_state),
    notifier: NotificationGateway = Depends(get_notifier),
) -> TaskQueue:
    return TaskQueue(TaskRepository(state), notifier)


async def get_lifecycle(
    state: StateManager = Depends(get_state),
    task_queue: TaskQueue = Depends(get_task_queue),
    notifier: NotificationGateway = Depends(get_notifier),
    settings: Settings = Depends(get_app_settings),
) -> OrderLifecycle:
    pricer = OrderPricer(CatalogRepository(state), PricingPolicy.from_settings(settings))
    return OrderLifecycle(OrderRepository(state), task_queue, pricer, notifier)


async def get_webhook_handler(
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
    settings: Settings = Depends(get_app_settings),
) -> PaymentWebhookHandler:
    return PaymentWebhookHandler(lifecycle, settings)


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str = Header(default=ActorRole.GUEST.value),
) -> Actor:
    """
    Caller identity as established by the upstream auth layer.

    The system identity is internal and can never be claimed by a request.
    """
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required",
        )

    try:
        role = ActorRole(x_actor_role.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown actor role: {x_actor_role}",
        ) from None

    if role == ActorRole.SYSTEM or x_actor_id == SYSTEM_ACTOR:
        raise ForbiddenError("The system identity is reserved")

    return Actor(id=x_actor_id.strip(), role=role)


def require_staff(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_staff:
        raise ForbiddenError("Staff access required")
    return actor


def require_manager(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != ActorRole.MANAGER:
        raise ForbiddenError("Manager access required")
    return actor


def _ok(data: Any, message: str | None = None) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]

    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def _check_read_access(order: Order, actor: Actor) -> None:
    if not actor.is_staff and order.guest_id != actor.id:
        raise ForbiddenError(f"Order {order.id} does not belong to {actor.id}", order_id=order.id)


# Order endpoints


@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def place_order(
    request: PlaceOrderRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """
    Place a new order.

    Prices are taken from the catalog; the order starts pending payment.
    """
    order = await lifecycle.place_order(
        guest_id=actor.id,
        items=[line.to_request() for line in request.items],
        channel=request.channel,
        customer=request.customer,
        notes=request.notes,
    )
    return _ok(order, "Order placed")


@router.get("/orders")
async def list_my_orders(
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """List the caller's own orders."""
    return _ok(await lifecycle.list_guest_orders(actor.id))


@router.get("/orders/{order_id}")
async def get_order_details(
    order_id: str,
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Get order details."""
    order = await lifecycle.get_order(order_id)
    _check_read_access(order, actor)
    return _ok(order)


@router.get("/orders/{order_id}/timeline")
async def get_order_timeline(
    order_id: str,
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Order history, kitchen tasks and current ETA."""
    timeline = await lifecycle.get_timeline(order_id, actor.id, actor.role)
    return _ok(
        {
            "orderId": timeline["order_id"],
            "status": timeline["status"].value,
            "kitchenStatus": timeline["kitchen_status"].value,
            "history": [entry.model_dump(mode="json") for entry in timeline["history"]],
            "tasks": [task.model_dump(mode="json") for task in timeline["tasks"]],
            "estimatedCompletionTime": timeline["estimated_completion_time"].isoformat()
            if timeline["estimated_completion_time"] else None,
        }
    )


@router.post("/orders/{order_id}/confirm")
async def confirm_order(
    order_id: str,
    request: ConfirmOrderRequest,
    actor: Actor = Depends(require_staff),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Confirm a paid order and queue it for the kitchen."""
    order = await lifecycle.confirm(
        order_id,
        payment_ref=request.payment_id,
        amount=request.amount,
        transaction_ref=request.transaction_id,
        actor_id=actor.id,
    )
    return _ok(order, "Order confirmed and sent to kitchen")


@router.put("/orders/{order_id}/assign")
async def assign_order_task(
    order_id: str,
    request: AssignTaskRequest,
    actor: Actor = Depends(require_manager),
    task_queue: TaskQueue = Depends(get_task_queue),
) -> dict[str, Any]:
    """Assign an order's queued task to a staff member."""
    task = await task_queue.assign(order_id, request.task_type, request.staff_id)
    logger.info("task_assigned_via_api", order_id=order_id, task_id=task.id, manager_id=actor.id)
    return _ok(task, "Task assigned successfully")


@router.put("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    actor: Actor = Depends(require_staff),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Advance an order's kitchen status."""
    requested = request.kitchen_status or request.status
    if not requested:
        raise InvalidStatusError("kitchenStatus is required")

    order = await lifecycle.advance_kitchen_status(
        order_id, requested, actor_id=actor.id, notes=request.notes
    )
    return _ok(order, f"Order status updated to {order.status.value}")


@router.put("/orders/{order_id}/modify")
async def modify_order(
    order_id: str,
    request: ModifyOrderRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Replace the items of the caller's order."""
    order = await lifecycle.modify(
        order_id,
        [line.to_request() for line in request.items],
        actor_id=actor.id,
        notes=request.notes,
    )
    return _ok(order, "Order modified successfully")


@router.delete("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest | None = Body(default=None),
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Cancel the caller's order and report the refund owed."""
    reason = request.reason if request else None
    order = await lifecycle.cancel(order_id, reason, actor_id=actor.id)

    refund = order.refund
    return _ok(
        {
            "orderId": order.id,
            "status": order.status.value,
            "refundAmount": str(refund.amount),
            "refundPercentage": refund.percentage,
            "refundStatus": refund.status.value,
        },
        refund_message(refund, order.currency),
    )


@router.post("/orders/{order_id}/review")
async def review_order(
    order_id: str,
    request: ReviewRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Review a delivered order."""
    order = await lifecycle.attach_review(order_id, request.rating, request.comment, actor_id=actor.id)
    return _ok(order.review, "Review submitted successfully")


@router.put("/orders/{order_id}/review/moderation")
async def moderate_review(
    order_id: str,
    request: ModerateReviewRequest,
    actor: Actor = Depends(require_manager),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Hide, show or flag an order's review."""
    order = await lifecycle.moderate_review(
        order_id, actor.id, is_visible=request.is_visible, flagged=request.flagged
    )
    return _ok(order.review, "Review moderation updated successfully")


@router.get("/reviews")
async def list_reviews(
    review_status: Literal["visible", "hidden"] | None = Query(default=None, alias="status"),
    flagged: bool | None = None,
    actor: Actor = Depends(require_manager),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Reviewed orders, newest first."""
    is_visible = None if review_status is None else review_status == "visible"
    orders = await lifecycle.list_reviews(is_visible=is_visible, flagged=flagged)
    return _ok(
        [
            {"orderId": order.id, "guestId": order.guest_id, "review": order.review.model_dump(mode="json")}
            for order in orders
        ]
    )


@router.get("/reviews/stats")
async def get_review_stats(
    actor: Actor = Depends(require_manager),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    return _ok(await lifecycle.review_stats())


# Kitchen endpoints


@router.get("/kitchen/queue")
async def get_kitchen_queue(
    actor: Actor = Depends(require_staff),
    task_queue: TaskQueue = Depends(get_task_queue),
) -> dict[str, Any]:
    """Open kitchen tasks, most urgent first."""
    return _ok(await task_queue.list_pending())


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    actor: Actor = Depends(require_staff),
    task_queue: TaskQueue = Depends(get_task_queue),
) -> dict[str, Any]:
    return _ok(await task_queue.get_task(task_id))


@router.post("/tasks/{task_id}/claim")
async def claim_task(
    task_id: str,
    actor: Actor = Depends(require_staff),
    task_queue: TaskQueue = Depends(get_task_queue),
) -> dict[str, Any]:
    """Take ownership of a queued task."""
    task = await task_queue.claim(task_id, actor.id)
    return _ok(task, "Task claimed")


@router.put("/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    request: TaskStatusRequest,
    actor: Actor = Depends(require_staff),
    task_queue: TaskQueue = Depends(get_task_queue),
) -> dict[str, Any]:
    """Advance a task held by the caller."""
    task = await task_queue.advance(task_id, request.status, actor.id, note=request.note)
    return _ok(task, f"Task status updated to {task.status.value}")


@router.put("/tasks/{task_id}/quality-checks")
async def record_quality_checks(
    task_id: str,
    request: QualityChecks,
    actor: Actor = Depends(require_staff),
    task_queue: TaskQueue = Depends(get_task_queue),
) -> dict[str, Any]:
    task: Task = await task_queue.record_quality_checks(task_id, actor.id, request)
    return _ok(task, "Quality checks recorded")


@router.get("/staff/{staff_id}/workload")
async def get_staff_workload(
    staff_id: str,
    actor: Actor = Depends(require_staff),
    task_queue: TaskQueue = Depends(get_task_queue),
) -> dict[str, Any]:
    """Outstanding work held by a staff member."""
    if actor.role != ActorRole.MANAGER and actor.id != staff_id:
        raise ForbiddenError("Staff can only view their own workload")
    return _ok(await task_queue.staff_workload(staff_id))


# Payment gateway endpoints


@router.post("/webhooks/payment")
async def payment_webhook(
    request: Request,
    handler: PaymentWebhookHandler = Depends(get_webhook_handler),
) -> dict[str, Any]:
    """
    Gateway payment notification.

    Answers 200 once the signature is verified, whatever the business
    outcome, so the gateway does not keep retrying.
    """
    try:
        if request.headers.get("content-type", "").startswith("application/json"):
            payload = await request.json()
        else:
            payload = dict(await request.form())
    except ValueError:
        raise InvalidSignatureError("Malformed payment notification") from None

    try:
        notification = PaymentNotification.model_validate(payload)
    except ValidationError:
        logger.warning(
            "webhook_payload_malformed",
            fields=sorted(payload) if isinstance(payload, dict) else type(payload).__name__,
        )
        raise InvalidSignatureError("Malformed payment notification") from None

    ack = await handler.handle(notification)
    return _ok(ack)
