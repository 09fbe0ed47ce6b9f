"""Payment gateway notification models."""

from enum import Enum

from pydantic import BaseModel, Field

from orderflow.models.order import PaymentStatus


class PayHereStatusCode(str, Enum):
    """Status codes posted by the PayHere notify callback."""

    SUCCESS = "2"
    PENDING = "0"
    CANCELLED = "-1"
    FAILED = "-2"
    CHARGED_BACK = "-3"


STATUS_CODE_OUTCOMES: dict[PayHereStatusCode, PaymentStatus | None] = {
    PayHereStatusCode.SUCCESS: PaymentStatus.PAID,
    PayHereStatusCode.PENDING: None,
    PayHereStatusCode.CANCELLED: PaymentStatus.CANCELLED,
    PayHereStatusCode.FAILED: PaymentStatus.FAILED,
    PayHereStatusCode.CHARGED_BACK: PaymentStatus.CHARGED_BACK,
}


class PaymentNotification(BaseModel):
    """Gateway notification in its native field names."""

    merchant_id: str
    order_id: str
    payment_id: str | None = None
    payhere_amount: str
    payhere_currency: str
    status_code: str
    md5sig: str
    method: str | None = None
    status_message: str | None = None


class WebhookAck(BaseModel):
    """What the handler reports back once a notification is verified."""

    order_id: str
    status: str = Field(description="applied | duplicate | ignored | rejected")
    payment_status: PaymentStatus | None = None
    message: str = ""
