"""Order-related data models."""

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

CENT = Decimal("0.01")
ROOM_PATTERN = re.compile(r"\broom\b", re.IGNORECASE)


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def quantize_money(value: Decimal) -> Decimal:
    """Round a money amount to the currency minor unit."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    """Order lifecycle status progression."""

    PENDING = "pending"
    MODIFIED = "modified"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class KitchenStatus(str, Enum):
    """Kitchen-facing status mirrored on the order."""

    PENDING = "pending"
    QUEUED = "queued"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment outcome as reported by the gateway."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    CHARGED_BACK = "charged_back"


class OrderChannel(str, Enum):
    """How the order reaches the guest."""

    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"
    ROOM_SERVICE = "room_service"


class RefundStatus(str, Enum):
    PENDING = "pending"
    NOT_APPLICABLE = "not_applicable"


class OrderItem(BaseModel):
    """Individual line in an order, priced from the catalog."""

    item_id: str
    name: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    subtotal: Decimal = Field(default=Decimal("0.00"), ge=0)

    def calculate_subtotal(self) -> Decimal:
        """Calculate subtotal for this line."""
        self.subtotal = quantize_money(self.unit_price * Decimal(self.quantity))
        return self.subtotal


class ItemRequest(BaseModel):
    """Line requested by the guest; prices are never taken from the client."""

    item_id: str
    quantity: int = Field(default=1, ge=1)


class CustomerDetails(BaseModel):
    """Guest contact and delivery information."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    delivery_location: str | None = None
    special_instructions: str | None = None


class HistoryEntry(BaseModel):
    """Append-only status history entry."""

    status: str
    changed_at: datetime = Field(default_factory=utcnow)
    actor: str | None = None
    note: str | None = None


class ModificationEntry(BaseModel):
    """Append-only record of a guest change-set."""

    timestamp: datetime = Field(default_factory=utcnow)
    changes: dict = Field(default_factory=dict)


class RefundRecord(BaseModel):
    """Refund computed at cancellation time. Written once."""

    amount: Decimal
    percentage: int
    computed_at: datetime = Field(default_factory=utcnow)
    basis_status: OrderStatus
    status: RefundStatus
    actor: str


class VoidedPayment(BaseModel):
    """A captured payment released when a confirmed order was modified; refund owed."""

    payment_ref: str | None = None
    transaction_ref: str | None = None
    amount: Decimal
    voided_at: datetime = Field(default_factory=utcnow)
    refund_status: RefundStatus = RefundStatus.PENDING


class Review(BaseModel):
    """Post-delivery guest review."""

    rating: int = Field(ge=1, le=5)
    comment: str = ""
    submitted_at: datetime = Field(default_factory=utcnow)
    is_visible: bool = True
    flagged: bool = False
    moderated_by: str | None = None
    moderated_at: datetime | None = None


class Order(BaseModel):
    """Complete order document."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    guest_id: str
    channel: OrderChannel = OrderChannel.DINE_IN
    status: OrderStatus = OrderStatus.PENDING
    kitchen_status: KitchenStatus = KitchenStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_ref: str | None = None
    transaction_ref: str | None = None

    # Items
    items: list[OrderItem] = Field(default_factory=list)

    # Pricing
    currency: str = "LKR"
    subtotal: Decimal = Field(default=Decimal("0.00"), ge=0)
    discount: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax: Decimal = Field(default=Decimal("0.00"), ge=0)
    delivery_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    total: Decimal = Field(default=Decimal("0.00"), ge=0)

    customer: CustomerDetails = Field(default_factory=CustomerDetails)
    notes: str | None = None

    # Cancellation
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    refund: RefundRecord | None = None
    voided_payments: list[VoidedPayment] = Field(default_factory=list)

    review: Review | None = None

    history: list[HistoryEntry] = Field(default_factory=list)
    modification_history: list[ModificationEntry] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    confirmed_at: datetime | None = None
    ready_at: datetime | None = None
    delivered_at: datetime | None = None

    @property
    def is_room_service(self) -> bool:
        """Room service by channel, or by a delivery location naming a room."""
        if self.channel == OrderChannel.ROOM_SERVICE:
            return True
        location = self.customer.delivery_location
        return bool(location and ROOM_PATTERN.search(location))

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def calculate_totals(
        self,
        tax_rate: Decimal,
        discount_rate: Decimal = Decimal("0"),
        delivery_fee: Decimal = Decimal("0"),
    ) -> None:
        """Calculate all order totals from the current line items."""
        self.subtotal = quantize_money(sum((item.calculate_subtotal() for item in self.items), Decimal("0")))
        self.discount = quantize_money(self.subtotal * discount_rate)

        # Tax on the discounted amount
        self.tax = quantize_money((self.subtotal - self.discount) * tax_rate)

        if self.channel in (OrderChannel.DELIVERY, OrderChannel.ROOM_SERVICE):
            self.delivery_fee = quantize_money(delivery_fee)
        else:
            self.delivery_fee = Decimal("0.00")

        self.total = self.subtotal - self.discount + self.tax + self.delivery_fee

    def add_history(self, status: str, actor: str | None = None, note: str | None = None) -> None:
        """Append a status history entry and touch the update time."""
        entry = HistoryEntry(status=status, actor=actor, note=note)
        self.history.append(entry)
        self.updated_at = entry.changed_at
