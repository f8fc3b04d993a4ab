"""Unit tests for booking creation, visibility and participant resolution."""

from datetime import date, timedelta

import pytest
from conftest import ADMIN, CUSTOMER, GUIDE, OTHER_CUSTOMER, booking_request

from booking_core.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from booking_core.models.booking import BookingStatus
from booking_core.schemas.booking import CreateBookingRequest, ParticipantInput
from booking_core.services.booking_service import BOOKING_CODE_PREFIX, BookingService, generate_reference_code
from booking_core.services.catalog_service import CatalogService


def test_reference_code_shape():
    code = generate_reference_code(BOOKING_CODE_PREFIX)

    assert code.startswith("MG")
    assert len(code) == 12
    assert "-" not in code
    assert code.isalnum() and code.upper() == code


@pytest.mark.asyncio
async def test_new_booking_is_pending_with_deadline(test_session, open_departure):
    booking = await BookingService(test_session).create_booking(booking_request(open_departure.id, 2), CUSTOMER)

    assert booking.status == BookingStatus.PENDING
    assert booking.user_id == CUSTOMER.user_id
    assert booking.code.startswith(BOOKING_CODE_PREFIX)
    assert booking.payment_deadline - booking.created_at == timedelta(hours=24)
    assert booking.paid_at is None


@pytest.mark.asyncio
async def test_first_participant_is_primary(test_session, open_departure):
    booking = await BookingService(test_session).create_booking(booking_request(open_departure.id, 3), CUSTOMER)

    names = [link.participant.full_name for link in booking.participants]
    primaries = [link.is_primary for link in booking.participants]
    assert names == ["Traveller 0", "Traveller 1", "Traveller 2"]
    assert primaries == [True, False, False]


@pytest.mark.asyncio
async def test_customers_only_see_their_own_bookings(test_session, open_departure):
    service = BookingService(test_session)
    booking = await service.create_booking(booking_request(open_departure.id, 1), CUSTOMER)

    assert (await service.get_booking(booking.id, CUSTOMER)).id == booking.id
    assert (await service.get_booking(booking.id, ADMIN)).id == booking.id

    with pytest.raises(NotFoundError):
        await service.get_booking(booking.id, OTHER_CUSTOMER)

    # Guides are not the booking's owner either
    with pytest.raises(NotFoundError):
        await service.get_booking(booking.id, GUIDE)


@pytest.mark.asyncio
@pytest.mark.parametrize("actor", [ADMIN, GUIDE])
async def test_only_customers_create_bookings(test_session, open_departure, actor):
    with pytest.raises(ForbiddenError):
        await BookingService(test_session).create_booking(booking_request(open_departure.id, 1), actor)


@pytest.mark.asyncio
async def test_inline_participant_matched_by_id_number(test_session, open_departure):
    service = BookingService(test_session)
    entry = ParticipantInput(full_name="Siti Rahma", id_number="3173000000000001", phone="0811111111")

    first = await service.create_booking(
        CreateBookingRequest(departure_id=open_departure.id, participants=[entry]), CUSTOMER
    )
    updated = ParticipantInput(full_name="Siti Rahma", id_number="3173000000000001", phone="0822222222")
    second = await service.create_booking(
        CreateBookingRequest(departure_id=open_departure.id, participants=[updated]), CUSTOMER
    )

    profile = second.participants[0].participant
    assert profile.id == first.participants[0].participant.id
    assert profile.phone == "0822222222"


@pytest.mark.asyncio
async def test_inline_participant_matched_by_name_and_birth_date(test_session, open_departure):
    service = BookingService(test_session)
    entry = ParticipantInput(full_name="Budi Santoso", birth_date=date(1990, 5, 17))

    first = await service.create_booking(
        CreateBookingRequest(departure_id=open_departure.id, participants=[entry]), CUSTOMER
    )
    second = await service.create_booking(
        CreateBookingRequest(departure_id=open_departure.id, participants=[entry]), CUSTOMER
    )

    assert second.participants[0].participant.id == first.participants[0].participant.id


@pytest.mark.asyncio
async def test_profiles_are_not_shared_between_customers(test_session, open_departure):
    service = BookingService(test_session)
    entry = ParticipantInput(full_name="Budi Santoso", id_number="3173000000000002")

    mine = await service.create_booking(
        CreateBookingRequest(departure_id=open_departure.id, participants=[entry]), CUSTOMER
    )
    theirs = await service.create_booking(
        CreateBookingRequest(departure_id=open_departure.id, participants=[entry]), OTHER_CUSTOMER
    )

    assert theirs.participants[0].participant.id != mine.participants[0].participant.id


@pytest.mark.asyncio
async def test_saved_profile_can_be_referenced(test_session, open_departure):
    service = BookingService(test_session)
    first = await service.create_booking(booking_request(open_departure.id, 1), CUSTOMER)
    profile_id = first.participants[0].participant.id

    second = await service.create_booking(
        CreateBookingRequest(
            departure_id=open_departure.id,
            participants=[ParticipantInput(participant_id=profile_id)],
        ),
        CUSTOMER,
    )
    assert second.participants[0].participant.id == profile_id

    with pytest.raises(NotFoundError):
        await service.create_booking(
            CreateBookingRequest(
                departure_id=open_departure.id,
                participants=[ParticipantInput(participant_id=profile_id)],
            ),
            OTHER_CUSTOMER,
        )


@pytest.mark.asyncio
async def test_duplicate_traveller_rejected(test_session, open_departure):
    entry = ParticipantInput(full_name="Dewi Lestari", id_number="3173000000000003")

    with pytest.raises(ValidationError):
        await BookingService(test_session).create_booking(
            CreateBookingRequest(departure_id=open_departure.id, participants=[entry, entry]), CUSTOMER
        )


def test_participant_needs_reference_or_name():
    with pytest.raises(ValueError):
        ParticipantInput(phone="0811111111")


@pytest.mark.asyncio
async def test_price_change_keeps_booking_snapshot(test_session, open_departure, session_factory):
    booking = await BookingService(test_session).create_booking(booking_request(open_departure.id, 2), CUSTOMER)
    await test_session.commit()

    async with session_factory() as session:
        await CatalogService(session).update_departure_price(open_departure.id, 500_000)

    reloaded = await BookingService(test_session).get_booking(booking.id, ADMIN)
    await test_session.commit()
    assert reloaded.total_amount == 700_000
