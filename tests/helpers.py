"""Shared test doubles and builders."""

from typing import Any

from orderflow.models.payment import PaymentNotification
from orderflow.workflow.webhooks import payhere_signature

GUEST_ID = "guest-1"
OTHER_GUEST_ID = "guest-2"
MERCHANT_ID = "1211149"
MERCHANT_SECRET = "test-merchant-secret"


class RecordingNotificationGateway:
    """Keeps every notification in memory."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def notify(self, audience: str, event: str, payload: dict[str, Any]) -> None:
        self.sent.append((audience, event, payload))

    def events(self, audience: str | None = None) -> list[str]:
        return [event for aud, event, _ in self.sent if audience is None or aud == audience]


class FailingNotificationGateway:
    """Transport that is always down."""

    async def notify(self, audience: str, event: str, payload: dict[str, Any]) -> None:
        raise ConnectionError("notification transport unavailable")


def signed_notification(
    order_id: str,
    amount: str,
    status_code: str = "2",
    currency: str = "LKR",
    payment_id: str = "320025071278",
    secret: str = MERCHANT_SECRET,
) -> PaymentNotification:
    """A PayHere notification signed with ``secret``."""
    return PaymentNotification(
        merchant_id=MERCHANT_ID,
        order_id=order_id,
        payment_id=payment_id,
        payhere_amount=amount,
        payhere_currency=currency,
        status_code=status_code,
        md5sig=payhere_signature(MERCHANT_ID, order_id, amount, currency, status_code, secret),
        method="VISA",
    )
