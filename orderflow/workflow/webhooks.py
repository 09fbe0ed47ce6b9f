"""Payment gateway notification handling."""

import hashlib
import hmac
from decimal import Decimal, InvalidOperation

from orderflow.config import Settings, get_settings
from orderflow.errors import (
    ConflictError,
    InvalidAmountError,
    InvalidSignatureError,
    InvalidStateError,
)
from orderflow.models.order import PaymentStatus
from orderflow.models.payment import (
    STATUS_CODE_OUTCOMES,
    PayHereStatusCode,
    PaymentNotification,
    WebhookAck,
)
from orderflow.utils.logging import get_logger
from orderflow.workflow.lifecycle import OrderLifecycle

logger = get_logger(__name__)


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def payhere_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    merchant_secret: str,
) -> str:
    """Expected ``md5sig`` of a PayHere notification."""
    return _md5_upper(
        f"{merchant_id}{order_id}{amount}{currency}{status_code}{_md5_upper(merchant_secret)}"
    )


class PaymentWebhookHandler:
    """
    Turns verified gateway notifications into lifecycle calls.

    Delivery is at-least-once; a notification whose outcome the order
    already reflects is acknowledged as a duplicate without side effects.
    """

    def __init__(self, lifecycle: OrderLifecycle, settings: Settings | None = None):
        self.lifecycle = lifecycle
        self.settings = settings or get_settings()

    def verify_signature(self, notification: PaymentNotification) -> bool:
        if not self.settings.payhere_merchant_secret:
            return False
        if notification.merchant_id != self.settings.payhere_merchant_id:
            return False

        expected = payhere_signature(
            notification.merchant_id,
            notification.order_id,
            notification.payhere_amount,
            notification.payhere_currency,
            notification.status_code,
            self.settings.payhere_merchant_secret,
        )
        return hmac.compare_digest(expected, notification.md5sig.upper())

    async def handle(self, notification: PaymentNotification) -> WebhookAck:
        """
        Apply a gateway notification exactly once in effect.

        Raises:
            InvalidSignatureError: the notification failed verification;
                nothing is read or written
        """
        order_id = notification.order_id

        if not self.verify_signature(notification):
            logger.warning("webhook_signature_invalid", order_id=order_id)
            raise InvalidSignatureError("Invalid payment notification signature", order_id=order_id)

        try:
            code = PayHereStatusCode(notification.status_code)
        except ValueError:
            return self._ack(order_id, "rejected", f"Unknown status code {notification.status_code}")

        outcome = STATUS_CODE_OUTCOMES[code]
        if outcome is None:
            return self._ack(order_id, "ignored", "Payment still pending at the gateway")

        order = await self.lifecycle.orders.get(order_id)
        if order is None:
            return self._ack(order_id, "ignored", "Unknown order")

        if order.payment_status == outcome:
            return self._ack(order_id, "duplicate", "Outcome already applied", outcome)

        if outcome == PaymentStatus.PAID and notification.payment_id and any(
            voided.payment_ref == notification.payment_id for voided in order.voided_payments
        ):
            return self._ack(
                order_id, "duplicate", "Payment was released by an order modification", order.payment_status
            )

        if outcome == PaymentStatus.PAID:
            return await self._apply_success(notification, order.currency)

        _, changed = await self.lifecycle.record_payment_failure(
            order_id, outcome, notification.payment_id
        )
        if not changed:
            return self._ack(order_id, "duplicate", "Outcome already applied", outcome)
        return self._ack(order_id, "applied", f"Payment {outcome.value}", outcome)

    async def _apply_success(self, notification: PaymentNotification, currency: str) -> WebhookAck:
        order_id = notification.order_id

        if notification.payhere_currency.upper() != currency.upper():
            return self._ack(
                order_id, "rejected",
                f"Currency {notification.payhere_currency} does not match order currency {currency}",
            )
        try:
            amount = Decimal(notification.payhere_amount)
        except InvalidOperation:
            return self._ack(order_id, "rejected", f"Malformed amount {notification.payhere_amount}")

        try:
            await self.lifecycle.confirm(
                order_id,
                payment_ref=notification.payment_id or order_id,
                amount=amount,
            )
        except ConflictError:
            current = await self.lifecycle.orders.get(order_id)
            if current is not None and current.payment_status == PaymentStatus.PAID:
                return self._ack(order_id, "duplicate", "Outcome already applied", PaymentStatus.PAID)
            return self._ack(order_id, "rejected", "Order changed while applying payment")
        except (InvalidAmountError, InvalidStateError) as e:
            return self._ack(order_id, "rejected", e.message)

        return self._ack(order_id, "applied", "Payment confirmed", PaymentStatus.PAID)

    @staticmethod
    def _ack(
        order_id: str,
        status: str,
        message: str,
        payment_status: PaymentStatus | None = None,
    ) -> WebhookAck:
        log = logger.info if status in ("applied", "duplicate") else logger.warning
        log("webhook_processed", order_id=order_id, ack=status, detail=message)
        return WebhookAck(
            order_id=order_id, status=status, payment_status=payment_status, message=message
        )
