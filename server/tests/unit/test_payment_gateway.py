"""Unit tests for the payment gateway adapter."""

import pytest
from conftest import ADMIN, CUSTOMER, GUIDE, OTHER_CUSTOMER, SERVER_KEY, booking_request, signed_notification

from booking_core.core.actors import SYSTEM_ACTOR
from booking_core.core.exceptions import (
    ForbiddenError,
    InvalidSignatureError,
    NotFoundError,
    NotPendingError,
    UpstreamUnavailableError,
    ValidationError,
)
from booking_core.models.booking import BookingStatus
from booking_core.models.departure import DepartureGroup
from booking_core.services.booking_service import BookingService
from booking_core.services.payment_gateway import (
    APPLIED,
    IGNORED,
    UNCHANGED,
    PaymentGateway,
    compute_signature,
    map_provider_status,
)


async def _booking(session, departure, count=2, group_id=None):
    booking = await BookingService(session).create_booking(
        booking_request(departure.id, count=count, group_id=group_id), CUSTOMER
    )
    await session.commit()
    return booking


async def _reload(session, booking_id):
    booking = await BookingService(session).get_booking_by_id_or_raise(booking_id)
    await session.refresh(booking)
    await session.commit()
    return booking


def test_signature_is_sha512_of_fields_and_key():
    signature = compute_signature("MNG-MGABC-1", "200", "700000.00", "key")

    assert len(signature) == 128
    assert signature == compute_signature("MNG-MGABC-1", "200", "700000.00", "key")
    assert signature != compute_signature("MNG-MGABC-1", "200", "700000.01", "key")


@pytest.mark.parametrize(
    "transaction_status,fraud_status,expected",
    [
        ("settlement", None, BookingStatus.PAYMENT_RECEIVED),
        ("capture", "accept", BookingStatus.PAYMENT_RECEIVED),
        ("capture", "challenge", None),
        ("pending", None, None),
        ("deny", None, BookingStatus.CANCELLED),
        ("expire", None, BookingStatus.CANCELLED),
        ("cancel", None, BookingStatus.CANCELLED),
        ("refund", None, None),
    ],
)
def test_map_provider_status(transaction_status, fraud_status, expected):
    assert map_provider_status(transaction_status, fraud_status) == expected


def test_order_id_round_trip(fake_provider):
    gateway = PaymentGateway(None, fake_provider, order_prefix="MNG")

    order_id = gateway.build_order_id("MGABC123", 1_760_000_000_000)

    assert order_id == "MNG-MGABC123-1760000000000"
    assert gateway.parse_order_id(order_id) == "MGABC123"
    assert gateway.parse_order_id(gateway.build_order_id("MGABC123")) == "MGABC123"
    with pytest.raises(NotFoundError):
        gateway.parse_order_id("OTHER-MGABC123-3")
    with pytest.raises(NotFoundError):
        gateway.parse_order_id("MNG-MGABC123")


@pytest.mark.asyncio
async def test_create_transaction(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)

    session = await gateway.create_transaction(booking.id, CUSTOMER)

    assert session.order_id.startswith(f"MNG-{booking.code}-")
    assert session.token == f"token-{session.order_id}"
    call = fake_provider.created[0]
    assert call["amount"] == 700_000
    assert call["customer"].first_name == "Traveller 0"
    assert call["item"].name == "Bromo Sunrise"
    assert call["callback_url"].endswith(f"/dashboard/bookings/{booking.id}")

    stored = await _reload(test_session, booking.id)
    assert stored.payment_order_id == session.order_id
    assert stored.payment_url == session.redirect_url


@pytest.mark.asyncio
async def test_create_transaction_reuses_open_checkout(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)

    first = await gateway.create_transaction(booking.id, CUSTOMER)
    second = await gateway.create_transaction(booking.id, CUSTOMER)

    assert second.token == first.token
    assert second.order_id == first.order_id
    assert len(fake_provider.created) == 1


@pytest.mark.asyncio
async def test_create_transaction_applies_settled_order(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    first = await gateway.create_transaction(booking.id, CUSTOMER)
    fake_provider.settle(first.order_id)

    with pytest.raises(NotPendingError):
        await gateway.create_transaction(booking.id, CUSTOMER)

    stored = await _reload(test_session, booking.id)
    assert stored.status == BookingStatus.PAYMENT_RECEIVED
    assert len(fake_provider.created) == 1


@pytest.mark.asyncio
async def test_create_transaction_requires_owner(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)

    with pytest.raises(ForbiddenError):
        await gateway.create_transaction(booking.id, OTHER_CUSTOMER)

    # Admins may start payment on a customer's behalf
    assert (await gateway.create_transaction(booking.id, ADMIN)).order_id


@pytest.mark.asyncio
async def test_create_transaction_requires_pending(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    await BookingService(test_session).cancel_booking(booking.id, CUSTOMER)

    with pytest.raises(NotPendingError):
        await PaymentGateway(test_session, fake_provider).create_transaction(booking.id, CUSTOMER)
    assert fake_provider.created == []


@pytest.mark.asyncio
async def test_create_transaction_provider_failure(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    fake_provider.fail_create = True

    with pytest.raises(UpstreamUnavailableError):
        await PaymentGateway(test_session, fake_provider).create_transaction(booking.id, CUSTOMER)

    stored = await _reload(test_session, booking.id)
    assert stored.status == BookingStatus.PENDING
    assert stored.payment_order_id is None


@pytest.mark.asyncio
async def test_webhook_settlement_then_replay(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking.id, CUSTOMER)

    assert await gateway.handle_webhook(signed_notification(checkout.order_id)) == APPLIED
    paid = await _reload(test_session, booking.id)
    assert paid.status == BookingStatus.PAYMENT_RECEIVED
    assert paid.payment_method == "bank_transfer"
    paid_at = paid.paid_at

    assert await gateway.handle_webhook(signed_notification(checkout.order_id)) == UNCHANGED
    replayed = await _reload(test_session, booking.id)
    assert replayed.status == BookingStatus.PAYMENT_RECEIVED
    assert replayed.paid_at == paid_at


@pytest.mark.asyncio
async def test_webhook_after_fulfilment_is_absorbed(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking.id, CUSTOMER)
    await gateway.handle_webhook(signed_notification(checkout.order_id))
    await BookingService(test_session).transition_booking(booking.id, BookingStatus.PROCESSED, ADMIN)

    assert await gateway.handle_webhook(signed_notification(checkout.order_id)) == UNCHANGED
    assert (await _reload(test_session, booking.id)).status == BookingStatus.PROCESSED


@pytest.mark.asyncio
async def test_webhook_bad_signature_changes_nothing(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking.id, CUSTOMER)

    forged = signed_notification(checkout.order_id, server_key="not-the-key")
    with pytest.raises(InvalidSignatureError):
        await gateway.handle_webhook(forged)

    tampered = signed_notification(checkout.order_id, server_key=SERVER_KEY)
    tampered["gross_amount"] = "1.00"
    with pytest.raises(InvalidSignatureError):
        await gateway.handle_webhook(tampered)

    assert (await _reload(test_session, booking.id)).status == BookingStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize("order_id", ["MNG-MGDOESNOTEXIST-1", "SOMEONE-ELSE-1", "MNG-lowercase-1"])
async def test_webhook_unknown_order(test_session, fake_provider, order_id):
    with pytest.raises(NotFoundError):
        await PaymentGateway(test_session, fake_provider).handle_webhook(signed_notification(order_id))


@pytest.mark.asyncio
async def test_webhook_malformed_payload(test_session, fake_provider):
    payload = signed_notification("MNG-MGABC-1")
    del payload["signature_key"]

    with pytest.raises(ValidationError):
        await PaymentGateway(test_session, fake_provider).handle_webhook(payload)

    payload = signed_notification("MNG-MGABC-1", transaction_status="teleported")
    with pytest.raises(ValidationError):
        await PaymentGateway(test_session, fake_provider).handle_webhook(payload)


@pytest.mark.asyncio
async def test_webhook_deny_cancels_and_releases_group(test_session, private_departure, private_groups, fake_provider):
    group = private_groups[0]
    booking = await _booking(test_session, private_departure, group_id=group.id)
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking.id, CUSTOMER)

    assert await gateway.handle_webhook(signed_notification(checkout.order_id, transaction_status="deny")) == APPLIED

    assert (await _reload(test_session, booking.id)).status == BookingStatus.CANCELLED
    released = await test_session.get(DepartureGroup, group.id)
    await test_session.refresh(released)
    await test_session.commit()
    assert released.is_booked is False


@pytest.mark.asyncio
async def test_webhook_fraud_challenge_leaves_pending(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking.id, CUSTOMER)

    outcome = await gateway.handle_webhook(
        signed_notification(checkout.order_id, transaction_status="capture", fraud_status="challenge")
    )

    assert outcome == IGNORED
    assert (await _reload(test_session, booking.id)).status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_webhook_failure_of_discarded_order_ignored(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    booking_id = booking.id
    gateway = PaymentGateway(test_session, fake_provider)
    await gateway.create_transaction(booking_id, CUSTOMER)

    # Order left at the provider by a concurrent checkout that lost the race
    discarded_order_id = gateway.build_order_id(booking.code, 1)

    outcome = await gateway.handle_webhook(signed_notification(discarded_order_id, transaction_status="expire"))

    assert outcome == IGNORED
    assert (await _reload(test_session, booking_id)).status == BookingStatus.PENDING

    # Money received on it still counts
    assert await gateway.handle_webhook(signed_notification(discarded_order_id)) == APPLIED
    assert (await _reload(test_session, booking_id)).status == BookingStatus.PAYMENT_RECEIVED


@pytest.mark.asyncio
async def test_webhook_payment_after_expiry_ignored(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    booking_id = booking.id
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking_id, CUSTOMER)
    await BookingService(test_session).transition_booking(booking_id, BookingStatus.EXPIRED, SYSTEM_ACTOR)

    assert await gateway.handle_webhook(signed_notification(checkout.order_id)) == IGNORED
    assert (await _reload(test_session, booking_id)).status == BookingStatus.EXPIRED


@pytest.mark.asyncio
async def test_webhook_settlement_after_owner_cancel_ignored(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    booking_id = booking.id
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking_id, CUSTOMER)
    await BookingService(test_session).cancel_booking(booking_id, CUSTOMER)

    assert await gateway.handle_webhook(signed_notification(checkout.order_id)) == IGNORED
    # A repeat is acknowledged the same way
    assert await gateway.handle_webhook(signed_notification(checkout.order_id)) == IGNORED
    assert (await _reload(test_session, booking_id)).status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_poll_status_applies_settlement(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking.id, CUSTOMER)
    fake_provider.settle(checkout.order_id)

    result = await gateway.poll_status(booking.id, CUSTOMER)

    assert result.changed is True
    assert result.provider_checked is True
    assert result.booking.status == BookingStatus.PAYMENT_RECEIVED


@pytest.mark.asyncio
async def test_poll_status_absorbs_provider_outage(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    await gateway.create_transaction(booking.id, CUSTOMER)
    fake_provider.fail_status = True

    result = await gateway.poll_status(booking.id, CUSTOMER)

    assert result.changed is False
    assert result.provider_checked is False
    assert result.booking.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_poll_status_without_checkout_skips_provider(test_session, open_departure, fake_provider):
    booking = await _booking(test_session, open_departure)
    fake_provider.fail_status = True

    result = await PaymentGateway(test_session, fake_provider).poll_status(booking.id, CUSTOMER)

    assert result.provider_checked is False
    assert result.booking.status == BookingStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize("actor", [OTHER_CUSTOMER, GUIDE])
async def test_poll_status_hidden_from_non_owners(test_session, open_departure, fake_provider, actor):
    booking = await _booking(test_session, open_departure)
    gateway = PaymentGateway(test_session, fake_provider)
    checkout = await gateway.create_transaction(booking.id, CUSTOMER)
    fake_provider.settle(checkout.order_id)

    with pytest.raises(NotFoundError):
        await gateway.poll_status(booking.id, actor)

    # Nobody but the owner or an admin gets to trigger reconciliation
    assert (await _reload(test_session, booking.id)).status == BookingStatus.PENDING
