"""Payment-related Pydantic schemas, including the provider notification payload."""

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingStatus

TransactionStatus = Literal[
    "capture",
    "settlement",
    "pending",
    "deny",
    "cancel",
    "expire",
    "refund",
    "partial_refund",
    "chargeback",
    "partial_chargeback",
    "authorize",
    "failure",
]

FraudStatus = Literal["accept", "challenge", "deny"]


class PaymentNotification(BaseModel):
    """
    HTTP notification body posted by the payment provider.

    Decoding is strict: a missing signature field or an unrecognised
    ``transaction_status`` is rejected rather than guessed at. Unrelated
    fields the provider adds are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    order_id: str = Field(..., min_length=1, max_length=64)
    status_code: str = Field(..., min_length=1, max_length=8)
    gross_amount: str = Field(..., min_length=1, max_length=32)
    signature_key: str = Field(..., min_length=1, max_length=256)
    transaction_status: TransactionStatus
    fraud_status: Optional[FraudStatus] = None
    payment_type: Optional[str] = Field(None, max_length=32)
    transaction_id: Optional[str] = Field(None, max_length=64)


class CreatePaymentRequest(BaseModel):
    """Request schema for starting (or resuming) payment of a booking."""

    booking_id: UUID = Field(..., description="Booking to pay for")


class PaymentTransaction(BaseModel):
    """Provider transaction handed to the payer."""

    booking_id: str = Field(..., description="Booking being paid")
    order_id: str = Field(..., description="Provider order identifier")
    token: str = Field(..., description="Provider checkout token")
    redirect_url: str = Field(..., description="Hosted payment page")


class PaymentStatusRequest(BaseModel):
    """Request schema for polling the payment status of a booking."""

    booking_id: UUID = Field(..., description="Booking to check")


class PaymentStatus(BaseModel):
    """Result of a payment status poll."""

    booking_id: str = Field(..., description="Booking checked")
    status: BookingStatus = Field(..., description="Booking status after the poll")
    changed: bool = Field(False, description="Whether this poll moved the booking")
    provider_checked: bool = Field(False, description="Whether the provider answered this poll")


class WebhookAck(BaseModel):
    """Acknowledgement returned to the provider."""

    status: str = Field("ok", description="Always 'ok' when the notification was accepted")
    outcome: str = Field(..., description="What the notification did: applied, ignored, unchanged")
