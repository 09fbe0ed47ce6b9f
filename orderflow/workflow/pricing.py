"""Order pricing from current catalog prices."""

from dataclasses import dataclass
from decimal import Decimal

from orderflow.config import Settings
from orderflow.errors import InvalidItemError
from orderflow.models.order import ItemRequest, Order, OrderItem
from orderflow.state.catalog import CatalogRepository


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal
    discount_rate: Decimal
    delivery_fee: Decimal
    currency: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingPolicy":
        return cls(
            tax_rate=settings.tax_rate,
            discount_rate=settings.discount_rate,
            delivery_fee=settings.delivery_fee,
            currency=settings.currency,
        )


class OrderPricer:
    """Builds order lines from the catalog and applies the pricing policy."""

    def __init__(self, catalog: CatalogRepository, policy: PricingPolicy):
        self.catalog = catalog
        self.policy = policy

    async def build_items(self, requests: list[ItemRequest]) -> list[OrderItem]:
        """
        Price requested lines at current catalog prices.

        Raises:
            InvalidItemError: empty order, unknown or unavailable item
        """
        if not requests:
            raise InvalidItemError("An order needs at least one item")

        items: list[OrderItem] = []
        for request in requests:
            menu_item = await self.catalog.get_item(request.item_id)
            if menu_item is None or not menu_item.is_available:
                raise InvalidItemError(
                    f"Menu item {request.item_id} not available", item_id=request.item_id
                )

            item = OrderItem(
                item_id=menu_item.item_id,
                name=menu_item.name,
                quantity=request.quantity,
                unit_price=menu_item.price,
            )
            item.calculate_subtotal()
            items.append(item)

        return items

    def apply(self, order: Order, items: list[OrderItem]) -> None:
        """Replace the order's lines and recompute every total."""
        order.items = items
        order.currency = self.policy.currency
        order.calculate_totals(
            tax_rate=self.policy.tax_rate,
            discount_rate=self.policy.discount_rate,
            delivery_fee=self.policy.delivery_fee,
        )
