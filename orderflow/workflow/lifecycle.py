"""Order lifecycle state machine.

Every transition is a conditional update against the stored order: the
precondition is evaluated on the document that is actually replaced and the
history entry is written in the same atomic update as the status change.
"""

from decimal import Decimal
from typing import Any

from orderflow.errors import (
    AlreadyReviewedError,
    ConflictError,
    ForbiddenError,
    InvalidAmountError,
    InvalidRatingError,
    InvalidStateError,
    InvalidStatusError,
    NotFoundError,
)
from orderflow.models.actor import ActorRole
from orderflow.models.order import (
    CustomerDetails,
    ItemRequest,
    KitchenStatus,
    ModificationEntry,
    Order,
    OrderChannel,
    OrderStatus,
    PaymentStatus,
    RefundRecord,
    RefundStatus,
    Review,
    VoidedPayment,
    quantize_money,
    utcnow,
)
from orderflow.models.task import TaskType
from orderflow.state.orders import OrderRepository
from orderflow.utils.logging import TransitionLogger
from orderflow.workflow.notifications import (
    KITCHEN_AUDIENCE,
    MANAGER_AUDIENCE,
    NotificationGateway,
    guest_audience,
    notify_safely,
)
from orderflow.workflow.pricing import OrderPricer
from orderflow.workflow.refunds import calculate_refund
from orderflow.workflow.task_queue import SYSTEM_ACTOR, TaskQueue

# requested kitchen status -> (required order status, resulting order status)
KITCHEN_TRANSITIONS: dict[KitchenStatus, tuple[OrderStatus, OrderStatus]] = {
    KitchenStatus.PREPARING: (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
    KitchenStatus.READY: (OrderStatus.PREPARING, OrderStatus.READY),
    KitchenStatus.DELIVERED: (OrderStatus.READY, OrderStatus.DELIVERED),
}

KITCHEN_TASK_TYPES = frozenset({TaskType.PREP, TaskType.COOK, TaskType.PLATE})

MODIFIABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
CANCELLABLE_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING}
)


def refund_message(refund: RefundRecord, currency: str) -> str:
    """Guest-facing summary of a cancellation refund."""
    if refund.amount > 0:
        return (
            f"Order cancelled. Refund of {currency} {refund.amount} "
            f"({refund.percentage}%) will be processed."
        )
    return "Order cancelled. No payment was captured, so no refund is due."


class OrderLifecycle:
    """
    Drives orders from checkout to delivery or cancellation.

    Responsibilities:
    - Guarded status transitions with atomic history
    - Task spawning and cancellation cascades through the TaskQueue
    - Refund records on cancellation
    - Guest and staff notifications (best-effort)
    """

    def __init__(
        self,
        orders: OrderRepository,
        task_queue: TaskQueue,
        pricer: OrderPricer,
        notifier: NotificationGateway,
    ):
        self.orders = orders
        self.task_queue = task_queue
        self.pricer = pricer
        self.notifier = notifier
        self.logger = TransitionLogger("order_lifecycle")

    async def _require(self, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
        return order

    @staticmethod
    def _require_owner(order: Order, actor_id: str) -> None:
        if order.guest_id != actor_id:
            raise ForbiddenError(
                f"Order {order.id} does not belong to {actor_id}", order_id=order.id
            )

    @staticmethod
    def _expect(order: Order, expected: OrderStatus) -> None:
        if order.status != expected:
            raise ConflictError(
                f"Order {order.id} changed from {expected.value} to {order.status.value}",
                order_id=order.id,
            )

    async def _notify_guest(self, order: Order, event: str, **extra: Any) -> None:
        await notify_safely(
            self.notifier,
            guest_audience(order.guest_id),
            event,
            {
                "orderId": order.id,
                "status": order.status.value,
                "kitchenStatus": order.kitchen_status.value,
                **extra,
            },
        )

    async def place_order(
        self,
        guest_id: str,
        items: list[ItemRequest],
        channel: OrderChannel = OrderChannel.DINE_IN,
        customer: CustomerDetails | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Create a pending order priced from the current catalog.

        Args:
            guest_id: Owning guest (account id or checkout email)
            items: Requested lines; prices are looked up, never trusted
            channel: Dine-in, takeaway, delivery or room service
            customer: Contact and delivery details
            notes: Free-text order notes

        Returns:
            The stored order
        """
        order = Order(
            guest_id=guest_id,
            channel=channel,
            customer=customer or CustomerDetails(),
            notes=notes,
        )
        self.pricer.apply(order, await self.pricer.build_items(items))
        order.add_history(OrderStatus.PENDING.value, actor=guest_id, note="Order placed")

        await self.orders.create(order)

        self.logger.log_transition(
            "order", order.id, None, order.status.value,
            actor=guest_id, total=str(order.total), channel=order.channel.value,
        )
        await notify_safely(
            self.notifier,
            MANAGER_AUDIENCE,
            "newFoodOrder",
            {"orderId": order.id, "total": str(order.total), "isRoomService": order.is_room_service},
        )
        return order

    async def get_order(self, order_id: str) -> Order:
        return await self._require(order_id)

    async def list_guest_orders(self, guest_id: str) -> list[Order]:
        return await self.orders.list_for_guest(guest_id)

    async def get_timeline(
        self,
        order_id: str,
        actor_id: str,
        role: ActorRole = ActorRole.GUEST,
    ) -> dict[str, Any]:
        """Order history, its tasks and the current ETA."""
        order = await self._require(order_id)
        if role == ActorRole.GUEST:
            self._require_owner(order, actor_id)

        tasks = await self.task_queue.list_for_order(order_id)
        open_tasks = [task for task in tasks if not task.status.is_terminal]
        eta = open_tasks[0].estimated_completion_time if open_tasks else None

        return {
            "order_id": order.id,
            "status": order.status,
            "kitchen_status": order.kitchen_status,
            "history": order.history,
            "tasks": tasks,
            "estimated_completion_time": eta,
        }

    async def confirm(
        self,
        order_id: str,
        payment_ref: str,
        amount: Decimal | None = None,
        transaction_ref: str | None = None,
        actor_id: str = SYSTEM_ACTOR,
    ) -> Order:
        """
        Record a captured payment and hand the order to the kitchen.

        ``amount`` is checked against the order total when given; the
        payment webhook always passes the amount the gateway captured.

        Raises:
            NotFoundError: unknown order
            ConflictError: already confirmed or paid
            InvalidStateError: order is past the point of payment
            InvalidAmountError: amount differs from the order total
        """
        order = await self._require(order_id)
        if order.status == OrderStatus.CONFIRMED or order.payment_status == PaymentStatus.PAID:
            raise ConflictError(f"Order {order_id} is already confirmed", order_id=order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidStateError(
                f"Cannot confirm order in {order.status.value} status", order_id=order_id
            )

        if amount is not None:
            amount = quantize_money(amount)

        def apply(current: Order) -> bool:
            self._expect(current, OrderStatus.PENDING)
            if current.payment_status == PaymentStatus.PAID:
                raise ConflictError(f"Order {order_id} is already paid", order_id=order_id)
            if amount is not None and amount != current.total:
                raise InvalidAmountError(
                    f"Payment amount {amount} does not match order total {current.total}",
                    order_id=order_id,
                    expected=str(current.total),
                    received=str(amount),
                )

            current.payment_status = PaymentStatus.PAID
            current.payment_ref = payment_ref
            current.transaction_ref = transaction_ref
            current.status = OrderStatus.CONFIRMED
            current.kitchen_status = KitchenStatus.QUEUED
            current.confirmed_at = utcnow()
            current.add_history(
                OrderStatus.CONFIRMED.value, actor=actor_id,
                note="Payment confirmed, order queued for kitchen",
            )
            return True

        try:
            order = await self.orders.update(order_id, apply)
        except InvalidAmountError as e:
            self.logger.log_rejection("order", order_id, e.code, e.message)
            raise

        self.logger.log_transition(
            "order", order.id, OrderStatus.PENDING.value, order.status.value,
            actor=actor_id, payment_ref=payment_ref,
        )

        task = await self.task_queue.enqueue(
            order.id, TaskType.PREP, order.is_room_service, order.item_count
        )

        await notify_safely(
            self.notifier,
            MANAGER_AUDIENCE,
            "newFoodOrder",
            {
                "orderId": order.id,
                "status": order.status.value,
                "taskId": task.id,
                "priority": task.priority.value,
                "isRoomService": order.is_room_service,
            },
        )
        await self._notify_guest(
            order,
            "foodStatusUpdate",
            estimatedTime=task.estimated_completion_time.isoformat()
            if task.estimated_completion_time else None,
        )
        return order

    async def advance_kitchen_status(
        self,
        order_id: str,
        kitchen_status: KitchenStatus | str,
        actor_id: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Move an order through the kitchen: preparing, ready, delivered.

        Reaching ``ready`` completes the open kitchen tasks and spawns the
        delivery task; reaching ``delivered`` completes whatever is still
        open and makes the order reviewable.
        """
        try:
            requested = KitchenStatus(kitchen_status)
        except ValueError:
            raise InvalidStatusError(f"Invalid kitchen status: {kitchen_status}") from None
        if requested not in KITCHEN_TRANSITIONS:
            raise InvalidStatusError(f"Invalid kitchen status: {requested.value}")

        required, target = KITCHEN_TRANSITIONS[requested]
        actor = actor_id or SYSTEM_ACTOR

        order = await self._require(order_id)
        if order.status != required:
            raise InvalidStateError(
                f"Cannot change order from {order.status.value} to {target.value}",
                order_id=order_id,
            )

        def apply(current: Order) -> bool:
            self._expect(current, required)

            now = utcnow()
            current.status = target
            current.kitchen_status = requested
            if target == OrderStatus.READY:
                current.ready_at = now
            elif target == OrderStatus.DELIVERED:
                current.delivered_at = now
            current.add_history(target.value, actor=actor, note=notes or f"Status updated to {target.value}")
            return True

        order = await self.orders.update(order_id, apply)
        self.logger.log_transition("order", order.id, required.value, target.value, actor=actor)

        if target == OrderStatus.READY:
            await self.task_queue.close_for_order(order.id, KITCHEN_TASK_TYPES)
            await self.task_queue.enqueue(
                order.id, TaskType.DELIVERY, order.is_room_service, order.item_count
            )
        elif target == OrderStatus.DELIVERED:
            await self.task_queue.close_for_order(order.id)

        await notify_safely(
            self.notifier,
            KITCHEN_AUDIENCE,
            "orderStatusChanged",
            {"orderId": order.id, "status": order.status.value, "kitchenStatus": order.kitchen_status.value},
        )
        await self._notify_guest(order, "foodStatusUpdate")
        if target == OrderStatus.DELIVERED:
            await self._notify_guest(order, "showReview")
        return order

    async def modify(
        self,
        order_id: str,
        items: list[ItemRequest],
        actor_id: str,
        notes: str | None = None,
    ) -> Order:
        """
        Replace an order's lines and reprice them from the catalog.

        The order passes through ``modified`` and lands back in ``pending``.
        A confirmed order loses its queued kitchen work and has to be paid
        again for the new total; the released capture stays on the order as
        a voided payment with its refund pending.
        """
        order = await self._require(order_id)
        self._require_owner(order, actor_id)
        if order.status not in MODIFIABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot modify order in {order.status.value} status", order_id=order_id
            )

        previous_status = order.status
        new_items = await self.pricer.build_items(items)

        def apply(current: Order) -> bool:
            self._expect(current, previous_status)

            previous_total = current.total
            changes: dict[str, Any] = {
                "items": [item.model_dump(mode="json") for item in new_items],
                "previous_total": str(previous_total),
                "previous_status": previous_status.value,
            }

            self.pricer.apply(current, new_items)
            changes["total"] = str(current.total)
            if notes is not None:
                current.notes = notes
                changes["notes"] = notes

            if previous_status == OrderStatus.CONFIRMED:
                voided = VoidedPayment(
                    payment_ref=current.payment_ref,
                    transaction_ref=current.transaction_ref,
                    amount=previous_total,
                )
                current.voided_payments.append(voided)
                changes["voided_payment_ref"] = voided.payment_ref
                changes["refund_owed"] = str(voided.amount)
                current.payment_status = PaymentStatus.PENDING
                current.payment_ref = None
                current.transaction_ref = None
                current.confirmed_at = None
                current.kitchen_status = KitchenStatus.PENDING

            current.modification_history.append(ModificationEntry(changes=changes))
            current.status = OrderStatus.MODIFIED
            current.add_history(OrderStatus.MODIFIED.value, actor=actor_id, note="Order modified by guest")
            current.status = OrderStatus.PENDING
            current.add_history(OrderStatus.PENDING.value, actor=SYSTEM_ACTOR, note="Totals recomputed")
            return True

        order = await self.orders.update(order_id, apply)
        self.logger.log_transition(
            "order", order.id, previous_status.value, order.status.value,
            actor=actor_id, total=str(order.total),
        )

        if previous_status == OrderStatus.CONFIRMED:
            await self.task_queue.cancel_all_for_order(order.id, reason="Order modified")

        await notify_safely(
            self.notifier,
            MANAGER_AUDIENCE,
            "orderModified",
            {
                "orderId": order.id,
                "total": str(order.total),
                "previousStatus": previous_status.value,
                "refundOwed": str(order.voided_payments[-1].amount)
                if previous_status == OrderStatus.CONFIRMED else None,
            },
        )
        await self._notify_guest(order, "foodStatusUpdate")
        return order

    async def cancel(self, order_id: str, reason: str | None, actor_id: str) -> Order:
        """
        Cancel an order on the owner's request and record the refund owed.

        The refund tier is taken from the status the order had when the
        cancellation was requested. Every open task of the order is
        cancelled afterwards.
        """
        order = await self._require(order_id)
        self._require_owner(order, actor_id)
        if order.status not in CANCELLABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot cancel order in {order.status.value} status", order_id=order_id
            )

        basis_status = order.status
        quote = calculate_refund(basis_status, order.total)

        def apply(current: Order) -> bool:
            self._expect(current, basis_status)
            if current.refund is not None:
                raise InvalidStateError(f"Order {order_id} already has a refund record", order_id=order_id)

            current.refund = RefundRecord(
                amount=quote.amount,
                percentage=quote.percentage,
                basis_status=quote.basis_status,
                status=quote.status,
                actor=actor_id,
            )
            self._mark_cancelled(current, reason, actor_id)
            current.modification_history.append(
                ModificationEntry(
                    changes={
                        "status": OrderStatus.CANCELLED.value,
                        "reason": reason,
                        "refund_amount": str(quote.amount),
                        "refund_percentage": quote.percentage,
                    }
                )
            )
            return True

        order = await self.orders.update(order_id, apply)
        self.logger.log_transition(
            "order", order.id, basis_status.value, order.status.value,
            actor=actor_id, refund_amount=str(quote.amount), refund_percentage=quote.percentage,
        )

        await self.task_queue.cancel_all_for_order(order.id, reason=reason)

        await notify_safely(
            self.notifier,
            MANAGER_AUDIENCE,
            "orderCancelled",
            {
                "orderId": order.id,
                "reason": reason,
                "refundAmount": str(quote.amount),
                "refundPercentage": quote.percentage,
            },
        )
        await self._notify_guest(order, "foodStatusUpdate")
        return order

    @staticmethod
    def _mark_cancelled(order: Order, reason: str | None, actor_id: str) -> None:
        order.status = OrderStatus.CANCELLED
        order.kitchen_status = KitchenStatus.CANCELLED
        order.cancellation_reason = reason
        order.cancelled_by = actor_id
        order.cancelled_at = utcnow()
        order.add_history(OrderStatus.CANCELLED.value, actor=actor_id, note=reason)

    async def record_payment_failure(
        self,
        order_id: str,
        outcome: PaymentStatus,
        payment_ref: str | None = None,
    ) -> tuple[Order, bool]:
        """
        Apply a failed, cancelled or charged-back payment outcome.

        A still-pending order is cancelled by the system with a zero refund,
        since nothing was captured. Returns the order and whether anything
        changed.
        """
        changed = False
        cancelled_pending = False

        def apply(current: Order) -> bool:
            nonlocal changed, cancelled_pending
            if current.payment_status == outcome:
                return False

            changed = True

            current.payment_status = outcome
            if payment_ref:
                current.payment_ref = payment_ref

            if current.status == OrderStatus.PENDING and current.refund is None:
                current.refund = RefundRecord(
                    amount=Decimal("0.00"),
                    percentage=0,
                    basis_status=OrderStatus.PENDING,
                    status=RefundStatus.NOT_APPLICABLE,
                    actor=SYSTEM_ACTOR,
                )
                self._mark_cancelled(current, f"Payment {outcome.value}", SYSTEM_ACTOR)
                cancelled_pending = True
            else:
                current.add_history(
                    current.status.value, actor=SYSTEM_ACTOR, note=f"Payment {outcome.value}"
                )
            return True

        order = await self.orders.update(order_id, apply)

        if cancelled_pending:
            self.logger.log_transition(
                "order", order.id, OrderStatus.PENDING.value, order.status.value,
                actor=SYSTEM_ACTOR, payment_status=outcome.value,
            )
            await self.task_queue.cancel_all_for_order(order.id, reason=f"Payment {outcome.value}")
            await self._notify_guest(order, "foodStatusUpdate", paymentStatus=outcome.value)
        elif changed:
            self.logger.logger.warning(
                "payment_status_changed", order_id=order.id, status=order.status.value,
                payment_status=outcome.value,
            )
            await notify_safely(
                self.notifier,
                MANAGER_AUDIENCE,
                "paymentStatusChanged",
                {"orderId": order.id, "paymentStatus": outcome.value, "status": order.status.value},
            )

        return order, changed

    async def attach_review(
        self,
        order_id: str,
        rating: int,
        comment: str | None,
        actor_id: str,
    ) -> Order:
        """Attach the guest's one review to a delivered order."""
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidRatingError("Rating must be between 1 and 5", rating=rating)

        order = await self._require(order_id)
        self._require_owner(order, actor_id)
        if order.status != OrderStatus.DELIVERED:
            raise InvalidStateError("Can only review delivered orders", order_id=order_id)
        if order.review is not None:
            raise AlreadyReviewedError(f"Order {order_id} has already been reviewed", order_id=order_id)

        def apply(current: Order) -> bool:
            if current.review is not None:
                raise AlreadyReviewedError(f"Order {order_id} has already been reviewed", order_id=order_id)
            self._expect(current, OrderStatus.DELIVERED)
            current.review = Review(rating=rating, comment=(comment or "").strip())
            return True

        order = await self.orders.update(order_id, apply)
        self.logger.logger.info("review_attached", order_id=order.id, rating=rating)

        await notify_safely(
            self.notifier,
            MANAGER_AUDIENCE,
            "newReview",
            {"orderId": order.id, "rating": rating},
        )
        return order

    async def moderate_review(
        self,
        order_id: str,
        actor_id: str,
        is_visible: bool | None = None,
        flagged: bool | None = None,
    ) -> Order:
        """Manager moderation of an order's review; unset flags are left as they are."""

        def apply(current: Order) -> bool:
            if current.review is None:
                raise NotFoundError(f"Order {order_id} has no review", order_id=order_id)
            if is_visible is not None:
                current.review.is_visible = is_visible
            if flagged is not None:
                current.review.flagged = flagged
            current.review.moderated_by = actor_id
            current.review.moderated_at = utcnow()
            return True

        order = await self.orders.update(order_id, apply)
        self.logger.logger.info(
            "review_moderated",
            order_id=order.id,
            moderator=actor_id,
            is_visible=order.review.is_visible,
            flagged=order.review.flagged,
        )
        return order

    async def list_reviews(
        self,
        is_visible: bool | None = None,
        flagged: bool | None = None,
    ) -> list[Order]:
        """Reviewed orders, newest review first, optionally filtered by moderation flags."""
        return [
            order for order in await self.orders.list_reviewed()
            if (is_visible is None or order.review.is_visible == is_visible)
            and (flagged is None or order.review.flagged == flagged)
        ]

    async def review_stats(self) -> dict[str, Any]:
        """Review counts, average rating and rating distribution."""
        reviews = [order.review for order in await self.orders.list_reviewed()]

        distribution = {rating: 0 for rating in range(1, 6)}
        for review in reviews:
            distribution[review.rating] += 1

        average = sum(r.rating for r in reviews) / len(reviews) if reviews else 0
        return {
            "total_reviews": len(reviews),
            "average_rating": round(average, 1),
            "visible_reviews": sum(1 for r in reviews if r.is_visible),
            "flagged_reviews": sum(1 for r in reviews if r.flagged),
            "rating_distribution": distribution,
        }
