"""Tests for refund tiers."""

from decimal import Decimal

import pytest

from orderflow.errors import InvalidStateError
from orderflow.models.order import OrderStatus, RefundStatus
from orderflow.workflow.refunds import calculate_refund


@pytest.mark.parametrize(
    "status, percentage",
    [
        (OrderStatus.PENDING, 100),
        (OrderStatus.CONFIRMED, 100),
        (OrderStatus.PREPARING, 50),
    ],
)
def test_refund_tiers(status: OrderStatus, percentage: int) -> None:
    quote = calculate_refund(status, Decimal("1100.00"))

    assert quote.percentage == percentage
    assert quote.basis_status == status
    assert quote.amount == Decimal("1100.00") * percentage / 100


@pytest.mark.parametrize(
    "status",
    [OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.MODIFIED],
)
def test_refund_rejected_after_kitchen_finishes(status: OrderStatus) -> None:
    with pytest.raises(InvalidStateError, match=f"Cannot cancel order in {status.value} status"):
        calculate_refund(status, Decimal("100.00"))


def test_partial_refund_rounds_half_up() -> None:
    quote = calculate_refund(OrderStatus.PREPARING, Decimal("100.01"))

    assert quote.amount == Decimal("50.01")
    assert quote.amount <= Decimal("100.01")


def test_refund_status_follows_amount() -> None:
    assert calculate_refund(OrderStatus.PENDING, Decimal("10.00")).status == RefundStatus.PENDING
    assert calculate_refund(OrderStatus.PENDING, Decimal("0.00")).status == RefundStatus.NOT_APPLICABLE
