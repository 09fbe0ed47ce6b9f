"""Refund tiers keyed by the order status at cancellation time."""

from dataclasses import dataclass
from decimal import Decimal

from orderflow.errors import InvalidStateError
from orderflow.models.order import OrderStatus, RefundStatus, quantize_money

# Once the kitchen has committed ingredients and labour only half is returned.
REFUND_TIERS: dict[OrderStatus, int] = {
    OrderStatus.PENDING: 100,
    OrderStatus.CONFIRMED: 100,
    OrderStatus.PREPARING: 50,
}


@dataclass(frozen=True)
class RefundQuote:
    amount: Decimal
    percentage: int
    basis_status: OrderStatus

    @property
    def status(self) -> RefundStatus:
        return RefundStatus.PENDING if self.amount > 0 else RefundStatus.NOT_APPLICABLE


def calculate_refund(status: OrderStatus, total: Decimal) -> RefundQuote:
    """
    Compute the refund owed when an order in ``status`` is cancelled.

    Raises:
        InvalidStateError: the order can no longer be cancelled
    """
    percentage = REFUND_TIERS.get(OrderStatus(status))
    if percentage is None:
        raise InvalidStateError(f"Cannot cancel order in {OrderStatus(status).value} status")

    amount = quantize_money(Decimal(total) * percentage / 100)
    return RefundQuote(amount=min(amount, Decimal(total)), percentage=percentage, basis_status=OrderStatus(status))
