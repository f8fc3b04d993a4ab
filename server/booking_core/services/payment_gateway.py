"""Payment gateway adapter: provider transactions, signed notifications and status polling."""

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from uuid import UUID

import pydantic
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.actors import SYSTEM_ACTOR, Actor, Role
from ..core.config import settings
from ..core.exceptions import (
    ForbiddenError,
    InvalidSignatureError,
    InvalidTransitionError,
    NotFoundError,
    NotPendingError,
    UpstreamUnavailableError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingParticipant, BookingStatus
from ..models.departure import Departure
from ..schemas.payment import PaymentNotification
from .booking_state_machine import BookingStateMachine
from .payment_provider import CustomerDetails, ItemDetails, PaymentProvider

logger = logging.getLogger(__name__)

# Notification outcomes
APPLIED = "applied"
UNCHANGED = "unchanged"
IGNORED = "ignored"


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    """Hex SHA-512 over the concatenated notification fields and the server key."""
    return hashlib.sha512(f"{order_id}{status_code}{gross_amount}{server_key}".encode("utf-8")).hexdigest()


def verify_signature(notification: PaymentNotification, server_key: str) -> bool:
    expected = compute_signature(
        notification.order_id,
        notification.status_code,
        notification.gross_amount,
        server_key,
    )
    return hmac.compare_digest(expected, notification.signature_key.lower())


def map_provider_status(transaction_status: str, fraud_status: Optional[str]) -> Optional[BookingStatus]:
    """
    Translate a provider transaction status to the booking status it implies.

    Returns None when the booking should stay as it is: payment still
    pending, a captured card payment held for fraud review, or a status
    with no booking-level meaning (refunds, chargebacks).
    """
    if transaction_status in ("capture", "settlement"):
        if fraud_status in (None, "accept"):
            return BookingStatus.PAYMENT_RECEIVED
        return None

    if transaction_status in ("deny", "expire", "cancel"):
        return BookingStatus.CANCELLED

    return None


@dataclass
class CheckoutSession:
    booking_id: UUID
    order_id: str
    token: str
    redirect_url: str


@dataclass
class PollResult:
    booking: Booking
    changed: bool
    provider_checked: bool


class PaymentGateway:
    """
    Drives bookings from payment provider events.

    Provider calls never run inside a database transaction; every state
    change goes through :class:`BookingStateMachine` as the system actor, so
    duplicate or late notifications are absorbed by the lifecycle rules.
    """

    def __init__(
        self,
        db: AsyncSession,
        provider: PaymentProvider,
        server_key: Optional[str] = None,
        order_prefix: Optional[str] = None,
        app_url: Optional[str] = None,
    ):
        self.db = db
        self.provider = provider
        self.server_key = settings.midtrans_server_key if server_key is None else server_key
        self.order_prefix = order_prefix or settings.payment_order_prefix
        self.app_url = (app_url or settings.app_url).rstrip("/")
        self.state_machine = BookingStateMachine(db)
        self._order_id_pattern = re.compile(
            rf"^{re.escape(self.order_prefix)}-(?P<code>[A-Z0-9]+)-\d+$"
        )

    def build_order_id(self, booking_code: str, issued_ms: Optional[int] = None) -> str:
        """Provider order id: prefix, booking code and the issue time in epoch milliseconds."""
        if issued_ms is None:
            issued_ms = time.time_ns() // 1_000_000
        return f"{self.order_prefix}-{booking_code}-{issued_ms}"

    def parse_order_id(self, order_id: str) -> str:
        """
        Extract the booking code from an order id.

        Raises:
            NotFoundError: If the order id was not issued by this system
        """
        match = self._order_id_pattern.match(order_id)
        if not match:
            raise NotFoundError(resource_type="payment order", resource_id=order_id)
        return match.group("code")

    async def create_transaction(self, booking_id: UUID, actor: Actor) -> CheckoutSession:
        """
        Start payment for a PENDING booking, or hand back the checkout already started.

        When the booking already has a provider token, the existing order is
        checked first: a paid or failed order is applied to the booking
        instead of charging again.

        Args:
            booking_id: Booking to pay for
            actor: Owning customer or admin

        Returns:
            Checkout token, redirect URL and order id

        Raises:
            NotFoundError: If booking not found
            ForbiddenError: If the actor does not own the booking
            NotPendingError: If the booking is no longer awaiting payment
            UpstreamUnavailableError: If the provider cannot create the transaction
        """
        booking = await self._load_for_checkout(booking_id)

        if not (actor.is_admin or (actor.role == Role.CUSTOMER and actor.owns(booking.user_id))):
            raise ForbiddenError(detail="Only the booking's owner may pay for it")

        if booking.status != BookingStatus.PENDING:
            raise NotPendingError(booking_id=str(booking_id), status=BookingStatus(booking.status).value)

        # Never hold a transaction open across provider I/O
        await self.db.commit()

        if booking.payment_token and booking.payment_order_id:
            return await self._resume_checkout(booking)

        order_id = self.build_order_id(booking.code)

        try:
            transaction = await self.provider.create_transaction(
                order_id=order_id,
                amount=booking.total_amount,
                customer=self._customer_details(booking),
                item=ItemDetails(
                    id=str(booking.departure_id),
                    name=booking.departure.package.title,
                    price=booking.total_amount,
                ),
                callback_url=f"{self.app_url}/dashboard/bookings/{booking.id}",
            )
        except UpstreamUnavailableError:
            metrics_collector.record_provider_error("create_transaction")
            metrics_collector.record_payment_transaction("failed")
            raise

        locked = await self._get_for_update(booking_id)
        if locked.payment_token and locked.payment_order_id:
            # A concurrent request stored its checkout first; the new one is never used
            await self.db.commit()
            logger.warning(
                "Discarding duplicate provider transaction",
                extra={"booking_id": str(booking_id), "order_id": order_id, "kept_order_id": locked.payment_order_id}
            )
            return self._session(locked)

        if locked.status != BookingStatus.PENDING:
            await self.db.commit()
            raise NotPendingError(booking_id=str(booking_id), status=BookingStatus(locked.status).value)

        locked.payment_token = transaction.token
        locked.payment_url = transaction.redirect_url
        locked.payment_order_id = order_id
        locked.payment_method = self.provider.name.upper()
        await self.db.commit()

        metrics_collector.record_payment_transaction("created")
        logger.info(
            "Payment transaction created",
            extra={
                "booking_id": str(booking_id),
                "booking_code": locked.code,
                "order_id": order_id,
                "amount": locked.total_amount
            }
        )

        return self._session(locked)

    async def handle_webhook(self, payload: Union[PaymentNotification, Dict[str, Any]]) -> str:
        """
        Verify and apply an inbound provider notification.

        Args:
            payload: Decoded notification or the raw JSON body

        Returns:
            Outcome: ``applied``, ``unchanged`` or ``ignored``

        Raises:
            ValidationError: If the body is not a recognisable notification
            InvalidSignatureError: If the signature does not match (no state is read)
            NotFoundError: If the order id does not resolve to a booking
        """
        notification = self._decode(payload)

        if not verify_signature(notification, self.server_key):
            metrics_collector.record_webhook("invalid_signature")
            logger.warning(
                "Payment notification rejected - bad signature",
                extra={"order_id": notification.order_id}
            )
            raise InvalidSignatureError()

        try:
            booking_code = self.parse_order_id(notification.order_id)
        except NotFoundError:
            metrics_collector.record_webhook("unknown_order")
            raise

        outcome = await self._apply_provider_status(
            booking_code=booking_code,
            order_id=notification.order_id,
            transaction_status=notification.transaction_status,
            fraud_status=notification.fraud_status,
            payment_type=notification.payment_type,
        )

        metrics_collector.record_webhook(outcome)
        return outcome

    async def poll_status(self, booking_id: UUID, actor: Actor) -> PollResult:
        """
        Ask the provider for a PENDING booking's payment status and apply it.

        Non-PENDING bookings, and bookings without a checkout, are returned as
        stored without calling the provider. Provider failures are absorbed
        and reported as unchanged.

        Raises:
            NotFoundError: If the booking is missing or not visible to the actor
        """
        booking = await self._get(booking_id)

        if not (actor.is_admin or actor.owns(booking.user_id)):
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        if booking.status != BookingStatus.PENDING or not booking.payment_order_id:
            return PollResult(booking=booking, changed=False, provider_checked=False)

        order_id = booking.payment_order_id
        await self.db.commit()

        try:
            status = await self.provider.get_status(order_id)
        except UpstreamUnavailableError as e:
            metrics_collector.record_provider_error("get_status")
            logger.warning(
                "Payment status poll failed - reporting unchanged",
                extra={"booking_id": str(booking_id), "order_id": order_id, "error": e.problem_details.get("detail")}
            )
            return PollResult(booking=booking, changed=False, provider_checked=False)

        if status is None:
            return PollResult(booking=booking, changed=False, provider_checked=True)

        outcome = await self._apply_provider_status(
            booking_code=booking.code,
            order_id=order_id,
            transaction_status=status.transaction_status,
            fraud_status=status.fraud_status,
            payment_type=status.payment_type,
        )

        booking = await self._get(booking_id)
        await self.db.commit()
        return PollResult(booking=booking, changed=outcome == APPLIED, provider_checked=True)

    async def _resume_checkout(self, booking: Booking) -> CheckoutSession:
        booking_id, booking_code, order_id = booking.id, booking.code, booking.payment_order_id

        try:
            status = await self.provider.get_status(order_id)
        except UpstreamUnavailableError:
            metrics_collector.record_provider_error("get_status")
            logger.warning(
                "Could not check existing payment order - reusing token",
                extra={"booking_id": str(booking_id), "order_id": order_id}
            )
            status = None

        if status is not None and map_provider_status(status.transaction_status, status.fraud_status):
            await self._apply_provider_status(
                booking_code=booking_code,
                order_id=order_id,
                transaction_status=status.transaction_status,
                fraud_status=status.fraud_status,
                payment_type=status.payment_type,
            )
            booking = await self._get(booking_id)
            await self.db.commit()
            if booking.status != BookingStatus.PENDING:
                raise NotPendingError(booking_id=str(booking_id), status=BookingStatus(booking.status).value)

        metrics_collector.record_payment_transaction("reused")
        logger.info(
            "Reusing existing payment transaction",
            extra={"booking_id": str(booking_id), "order_id": order_id}
        )
        return self._session(booking)

    async def _apply_provider_status(
        self,
        booking_code: str,
        order_id: str,
        transaction_status: str,
        fraud_status: Optional[str],
        payment_type: Optional[str],
    ) -> str:
        target = map_provider_status(transaction_status, fraud_status)
        log_context = {
            "order_id": order_id,
            "booking_code": booking_code,
            "transaction_status": transaction_status,
            "fraud_status": fraud_status,
        }

        stmt = select(Booking).where(Booking.code == booking_code).with_for_update().execution_options(
            populate_existing=True
        )
        booking = (await self.db.execute(stmt)).scalar_one_or_none()

        if not booking:
            await self.db.rollback()
            raise NotFoundError(resource_type="payment order", resource_id=order_id)

        if target is None:
            await self.db.commit()
            logger.info("Payment notification needs no booking change", extra=log_context)
            return IGNORED

        if target == BookingStatus.CANCELLED and booking.payment_order_id != order_id:
            await self.db.commit()
            logger.info(
                "Ignoring failure of a discarded payment order",
                extra={**log_context, "current_order_id": booking.payment_order_id}
            )
            return IGNORED

        if booking.status == target:
            await self.db.commit()
            return UNCHANGED

        # Rollback expires the instance; read what the log needs first
        current_status = BookingStatus(booking.status).value

        try:
            changed = await self.state_machine.transition(booking, target, SYSTEM_ACTOR)
        except (InvalidTransitionError, ForbiddenError) as e:
            await self.db.rollback()
            logger.error(
                "Payment notification conflicts with booking state",
                extra={**log_context, "booking_status": current_status, "error": e.problem_details.get("detail")}
            )
            return IGNORED

        if changed and target == BookingStatus.PAYMENT_RECEIVED:
            if payment_type:
                booking.payment_method = payment_type
            if booking.payment_order_id != order_id:
                logger.warning(
                    "Payment settled on a discarded order",
                    extra={**log_context, "current_order_id": booking.payment_order_id}
                )

        await self.db.commit()

        logger.info(
            "Payment status applied",
            extra={**log_context, "booking_id": str(booking.id), "status": target.value, "changed": changed}
        )
        return APPLIED if changed else UNCHANGED

    @staticmethod
    def _decode(payload: Union[PaymentNotification, Dict[str, Any]]) -> PaymentNotification:
        if isinstance(payload, PaymentNotification):
            return payload
        try:
            return PaymentNotification.model_validate(payload)
        except pydantic.ValidationError as e:
            metrics_collector.record_webhook("malformed")
            raise ValidationError(
                detail="Unrecognised payment notification",
                errors={".".join(str(part) for part in error["loc"]): error["msg"] for error in e.errors()}
            ) from e

    @staticmethod
    def _customer_details(booking: Booking) -> CustomerDetails:
        primary = next((link.participant for link in booking.participants if link.is_primary), None)
        if primary is None:
            return CustomerDetails(first_name=booking.code)
        return CustomerDetails(first_name=primary.full_name, email=primary.email, phone=primary.phone)

    @staticmethod
    def _session(booking: Booking) -> CheckoutSession:
        return CheckoutSession(
            booking_id=booking.id,
            order_id=booking.payment_order_id,
            token=booking.payment_token,
            redirect_url=booking.payment_url,
        )

    async def _get(self, booking_id: UUID) -> Booking:
        stmt = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        booking = (await self.db.execute(stmt)).scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def _get_for_update(self, booking_id: UUID) -> Booking:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        booking = (await self.db.execute(stmt)).scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def _load_for_checkout(self, booking_id: UUID) -> Booking:
        stmt = (
            select(Booking)
            .options(
                selectinload(Booking.participants).selectinload(BookingParticipant.participant),
                selectinload(Booking.departure).selectinload(Departure.package),
            )
            .where(Booking.id == booking_id)
        )
        booking = (await self.db.execute(stmt)).scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking
