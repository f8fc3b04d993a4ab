"""Unit tests for seat and group admission."""

from datetime import timedelta
from uuid import uuid4

import pytest
from conftest import ADMIN, CUSTOMER, OTHER_CUSTOMER, booking_request

from booking_core.core.actors import SYSTEM_ACTOR
from booking_core.core.database import utcnow
from booking_core.core.exceptions import (
    CapacityExceededError,
    GroupAlreadyBookedError,
    NotFoundError,
    ValidationError,
)
from booking_core.models.booking import Booking, BookingStatus
from booking_core.models.tour_package import TripType
from booking_core.services.booking_service import BookingService
from booking_core.services.capacity_ledger import CapacityLedger
from booking_core.services.catalog_service import CatalogService


async def _book(session, departure_id, count, actor=CUSTOMER, group_id=None, prefix="Traveller"):
    booking = await BookingService(session).create_booking(
        booking_request(departure_id, count=count, group_id=group_id, prefix=prefix), actor
    )
    await session.commit()
    return booking


@pytest.mark.asyncio
async def test_rejects_booking_beyond_capacity(test_session, open_departure):
    await _book(test_session, open_departure.id, 10)

    with pytest.raises(CapacityExceededError) as exc_info:
        await _book(test_session, open_departure.id, 6, actor=OTHER_CUSTOMER)

    assert exc_info.value.problem_details["code"] == "CAPACITY_EXCEEDED"
    assert await CapacityLedger(test_session).seats_taken(open_departure.id) == 10


@pytest.mark.asyncio
async def test_admits_booking_that_exactly_fills(test_session, open_departure):
    await _book(test_session, open_departure.id, 10)
    await _book(test_session, open_departure.id, 5, actor=OTHER_CUSTOMER)

    snapshot = await CapacityLedger(test_session).availability(open_departure.id)
    assert snapshot.trip_type == TripType.OPEN_TRIP
    assert snapshot.seats_taken == 15
    assert snapshot.seats_remaining == 0

    with pytest.raises(CapacityExceededError):
        await _book(test_session, open_departure.id, 1, prefix="Late")


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [BookingStatus.CANCELLED, BookingStatus.EXPIRED])
async def test_inactive_bookings_free_their_seats(test_session, open_departure, target):
    booking = await _book(test_session, open_departure.id, 10)
    await BookingService(test_session).transition_booking(booking.id, target, SYSTEM_ACTOR)

    await _book(test_session, open_departure.id, 15, actor=OTHER_CUSTOMER)
    assert await CapacityLedger(test_session).seats_taken(open_departure.id) == 15


@pytest.mark.asyncio
async def test_paid_bookings_keep_their_seats(test_session, open_departure):
    booking = await _book(test_session, open_departure.id, 10)
    await BookingService(test_session).transition_booking(booking.id, BookingStatus.PAYMENT_RECEIVED, ADMIN)

    with pytest.raises(CapacityExceededError):
        await _book(test_session, open_departure.id, 6, actor=OTHER_CUSTOMER)


@pytest.mark.asyncio
async def test_open_trip_total_is_price_times_participants(test_session, open_departure):
    booking = await _book(test_session, open_departure.id, 3)

    assert booking.trip_type == TripType.OPEN_TRIP
    assert booking.participant_count == 3
    assert booking.total_amount == 3 * 350_000
    assert booking.departure_group_id is None


@pytest.mark.asyncio
async def test_private_trip_total_is_group_price(test_session, private_departure, private_groups):
    group = private_groups[1]
    booking = await _book(test_session, private_departure.id, 4, group_id=group.id)

    assert booking.trip_type == TripType.PRIVATE_TRIP
    assert booking.departure_group_id == group.id
    assert booking.total_amount == 18_000_000


@pytest.mark.asyncio
async def test_group_is_exclusive(test_session, private_departure, private_groups):
    group = private_groups[0]
    await _book(test_session, private_departure.id, 2, group_id=group.id)

    with pytest.raises(GroupAlreadyBookedError):
        await _book(test_session, private_departure.id, 2, actor=OTHER_CUSTOMER, group_id=group.id)

    # The failed attempt left nothing behind
    bookings = (await test_session.execute(Booking.__table__.select())).all()
    await test_session.commit()
    assert len(bookings) == 1


@pytest.mark.asyncio
async def test_cancelled_group_can_be_booked_again(test_session, private_departure, private_groups):
    group = private_groups[0]
    first = await _book(test_session, private_departure.id, 2, group_id=group.id)
    await BookingService(test_session).cancel_booking(first.id, CUSTOMER)

    second = await _book(test_session, private_departure.id, 2, actor=OTHER_CUSTOMER, group_id=group.id)
    assert second.departure_group_id == group.id

    snapshot = await CapacityLedger(test_session).availability(private_departure.id)
    booked = {g.group_number: g.is_booked for g in snapshot.groups}
    assert booked == {1: True, 2: False}


@pytest.mark.asyncio
async def test_group_must_belong_to_departure(test_session, private_departure, private_groups, session_factory):
    async with session_factory() as session:
        catalog = CatalogService(session)
        package = await catalog.get_package_or_raise(private_departure.package_id)
        other = await catalog.create_departure(package_id=package.id, departure_date=utcnow() + timedelta(days=90))

    with pytest.raises(NotFoundError):
        await _book(test_session, other.id, 2, group_id=private_groups[0].id)


@pytest.mark.asyncio
async def test_open_trip_rejects_group(test_session, open_departure, private_groups):
    with pytest.raises(ValidationError):
        await _book(test_session, open_departure.id, 2, group_id=private_groups[0].id)


@pytest.mark.asyncio
async def test_private_trip_requires_group(test_session, private_departure):
    with pytest.raises(ValidationError):
        await _book(test_session, private_departure.id, 2)


@pytest.mark.asyncio
async def test_reserve_seats_rejects_private_departure(test_session, private_departure):
    with pytest.raises(ValidationError):
        await CapacityLedger(test_session).reserve_seats(private_departure.id, 1)
    await test_session.rollback()


@pytest.mark.asyncio
async def test_departed_trip_cannot_be_booked(test_session, session_factory):
    async with session_factory() as session:
        catalog = CatalogService(session)
        package = await catalog.create_package("Past Trip", "past-trip", TripType.OPEN_TRIP)
        departure = await catalog.create_departure(
            package_id=package.id,
            departure_date=utcnow() - timedelta(days=1),
            price_per_person=100_000,
            max_participants=10,
        )

    with pytest.raises(ValidationError):
        await _book(test_session, departure.id, 1)


@pytest.mark.asyncio
async def test_unknown_departure(test_session):
    with pytest.raises(NotFoundError):
        await _book(test_session, uuid4(), 1)
