"""Unit tests for catalogue maintenance."""

from datetime import timedelta

import pytest
from conftest import CUSTOMER, booking_request

from booking_core.core.database import utcnow
from booking_core.core.exceptions import ConflictError, ValidationError
from booking_core.models.tour_package import TripType
from booking_core.services.booking_service import BookingService
from booking_core.services.catalog_service import CatalogService


@pytest.mark.asyncio
async def test_duplicate_slug_conflicts(test_session):
    catalog = CatalogService(test_session)
    await catalog.create_package("Ijen Blue Fire", "ijen-blue-fire", TripType.OPEN_TRIP)

    with pytest.raises(ConflictError):
        await catalog.create_package("Ijen Again", "ijen-blue-fire", TripType.OPEN_TRIP)


@pytest.mark.asyncio
async def test_departure_fields_follow_trip_type(test_session):
    catalog = CatalogService(test_session)
    open_trip = await catalog.create_package("Open", "open", TripType.OPEN_TRIP)
    private_trip = await catalog.create_package("Private", "private", TripType.PRIVATE_TRIP)
    when = utcnow() + timedelta(days=10)

    with pytest.raises(ValidationError):
        await catalog.create_departure(open_trip.id, when)

    with pytest.raises(ValidationError):
        await catalog.create_departure(private_trip.id, when, price_per_person=100_000, max_participants=5)

    open_departure = await catalog.create_departure(open_trip.id, when, price_per_person=100_000, max_participants=5)
    with pytest.raises(ValidationError):
        await catalog.add_group(open_departure.id, group_number=1, price=1_000_000, max_participants=4)


@pytest.mark.asyncio
async def test_group_numbers_are_unique_per_departure(test_session, private_departure):
    with pytest.raises(ConflictError):
        await CatalogService(test_session).add_group(
            private_departure.id, group_number=1, price=5_000_000, max_participants=4
        )


@pytest.mark.asyncio
async def test_trip_type_fixed_once_booked(test_session, open_departure):
    catalog = CatalogService(test_session)

    package = await catalog.change_trip_type(open_departure.package_id, TripType.OPEN_TRIP)
    assert package.trip_type == TripType.OPEN_TRIP

    await BookingService(test_session).create_booking(booking_request(open_departure.id, 1), CUSTOMER)
    await test_session.commit()

    with pytest.raises(ConflictError):
        await catalog.change_trip_type(open_departure.package_id, TripType.PRIVATE_TRIP)


@pytest.mark.asyncio
async def test_group_price_update_keeps_booking_snapshot(test_session, private_departure, private_groups):
    group = private_groups[0]
    booking = await BookingService(test_session).create_booking(
        booking_request(private_departure.id, 2, group_id=group.id), CUSTOMER
    )
    await test_session.commit()

    updated = await CatalogService(test_session).update_group_price(group.id, 15_000_000)
    assert updated.price == 15_000_000

    reloaded = await BookingService(test_session).get_booking_by_id_or_raise(booking.id)
    assert reloaded.total_amount == 12_000_000
