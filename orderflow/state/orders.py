"""Order document persistence."""

from typing import Callable

from redis.asyncio.client import Pipeline

from orderflow.errors import NotFoundError
from orderflow.models.order import Order, utcnow
from orderflow.state.manager import StateManager
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)

OrderMutation = Callable[[Order], bool | None]

REVIEWED_ORDERS_KEY = "orders:reviewed"


class OrderRepository:
    """Stores orders as JSON documents keyed by order id."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _order_key(self, order_id: str) -> str:
        """Generate Redis key for an order."""
        return f"order:{order_id}"

    def _guest_key(self, guest_id: str) -> str:
        return f"orders:guest:{guest_id}"

    async def create(self, order: Order) -> Order:
        """Persist a new order and index it under its guest."""
        data = order.model_dump(mode="json")

        await self.state.create(
            self._order_key(order.id),
            data,
            extra_writes=lambda pipe: pipe.sadd(self._guest_key(order.guest_id), order.id),
        )

        logger.debug("order_stored", order_id=order.id, guest_id=order.guest_id)
        return order

    async def get(self, order_id: str) -> Order | None:
        """Retrieve an order by ID."""
        data = await self.state.get(self._order_key(order_id))

        if not data:
            return None

        return Order.model_validate(data)

    async def _load(self, order_ids: set[str]) -> list[Order]:
        documents = await self.state.get_many([self._order_key(oid) for oid in sorted(order_ids)])
        return [Order.model_validate(doc) for doc in documents if doc]

    async def list_for_guest(self, guest_id: str) -> list[Order]:
        """All orders placed by a guest, oldest first."""
        orders = await self._load(await self.state.smembers(self._guest_key(guest_id)))
        return sorted(orders, key=lambda o: o.created_at)

    async def list_reviewed(self) -> list[Order]:
        """Orders carrying a review, newest review first."""
        orders = await self._load(await self.state.smembers(REVIEWED_ORDERS_KEY))
        reviewed = [order for order in orders if order.review is not None]
        return sorted(reviewed, key=lambda o: o.review.submitted_at, reverse=True)

    async def update(self, order_id: str, mutate: OrderMutation) -> Order:
        """
        Apply ``mutate`` to the stored order as one atomic write.

        ``mutate`` checks its precondition against the freshly read order
        and raises to abort; returning False leaves the document unchanged.
        The review index is maintained inside the same transaction.
        """
        result: Order | None = None

        def apply(current: dict | None) -> dict | None:
            nonlocal result
            if current is None:
                raise NotFoundError(f"Order {order_id} not found", order_id=order_id)

            order = Order.model_validate(current)
            changed = mutate(order)
            result = order
            if changed is False:
                return None

            order.updated_at = utcnow()
            return order.model_dump(mode="json")

        def index(pipe: Pipeline, updated: dict) -> None:
            if result is not None and result.review is not None:
                pipe.sadd(REVIEWED_ORDERS_KEY, order_id)

        await self.state.compare_and_swap(self._order_key(order_id), apply, extra_writes=index)
        return result
