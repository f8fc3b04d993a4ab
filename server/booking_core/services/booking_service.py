"""Booking service for business logic operations."""

import logging
import secrets
import string
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.actors import Actor, Role
from ..core.config import settings
from ..core.database import utcnow
from ..core.exceptions import ForbiddenError, NotFoundError, ProblemDetailsException, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingParticipant, BookingStatus
from ..models.tour_package import TripType
from ..schemas.booking import CreateBookingRequest
from .booking_state_machine import BookingStateMachine
from .capacity_ledger import CapacityLedger
from .participant_service import ParticipantService

logger = logging.getLogger(__name__)

BOOKING_CODE_PREFIX = "MG"
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_reference_code(prefix: str, length: int = 10) -> str:
    """Random human-shareable code such as ``MG7K2P9QX4LA``; never contains a dash."""
    return prefix + ''.join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = CapacityLedger(db)
        self.state_machine = BookingStateMachine(db)
        self.participant_service = ParticipantService(db)

    async def create_booking(self, request: CreateBookingRequest, actor: Actor) -> Booking:
        """
        Admit a new PENDING booking onto a departure.

        Seat or group admission, participant resolution and the booking
        insert share one transaction; any failure rolls all of it back.

        Args:
            request: Booking creation request
            actor: Customer the booking will belong to

        Returns:
            Created booking with participants loaded

        Raises:
            NotFoundError: If the departure, group or a referenced participant is missing
            ValidationError: If the request does not fit the departure's trip type
            CapacityExceededError: If an open trip has too few seats left
            GroupAlreadyBookedError: If the private-trip group is already taken
            ForbiddenError: If the actor is not a customer
        """
        if actor.role != Role.CUSTOMER:
            raise ForbiddenError(
                detail="Only customers may book departures",
                required_roles=[Role.CUSTOMER.value]
            )

        participant_count = len(request.participants)

        try:
            departure = await self.ledger.lock_departure(request.departure_id)
            trip_type = TripType(departure.package.trip_type)
            now = utcnow()

            if departure.departure_date <= now:
                raise ValidationError(
                    detail=f"Departure {request.departure_id} has already started",
                    errors={"departure_id": str(request.departure_id)}
                )

            group_id = None
            if trip_type == TripType.OPEN_TRIP:
                if request.group_id is not None:
                    raise ValidationError(
                        detail="Open-trip departures are booked by seat, not by group",
                        errors={"group_id": str(request.group_id)}
                    )
                if departure.price_per_person is None:
                    raise ValidationError(detail=f"Departure {request.departure_id} has no seat price")

                await self.ledger.reserve_seats(request.departure_id, participant_count)
                total_amount = departure.price_per_person * participant_count
            else:
                if request.group_id is None:
                    raise ValidationError(
                        detail="Private-trip departures require a group",
                        errors={"group_id": "required"}
                    )

                group = await self.ledger.reserve_group(request.group_id, departure_id=request.departure_id)
                group_id = group.id
                total_amount = group.price

            participants = await self.participant_service.resolve(actor.user_id, request.participants)

            booking_code = generate_reference_code(BOOKING_CODE_PREFIX)
            while await self.get_booking_by_code(booking_code):
                booking_code = generate_reference_code(BOOKING_CODE_PREFIX)

            booking = Booking(
                code=booking_code,
                user_id=actor.user_id,
                departure_id=departure.id,
                departure_group_id=group_id,
                trip_type=trip_type,
                status=BookingStatus.PENDING,
                total_amount=total_amount,
                participant_count=participant_count,
                notes=request.notes,
                payment_deadline=now + timedelta(hours=settings.payment_deadline_hours),
                created_at=now,
                updated_at=now,
            )
            booking.participants = [
                BookingParticipant(participant=participant, position=position, is_primary=position == 0)
                for position, participant in enumerate(participants)
            ]

            self.db.add(booking)
            await self.db.commit()
        except ProblemDetailsException:
            await self.db.rollback()
            raise

        metrics_collector.record_booking_created(trip_type.value)
        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "departure_id": str(booking.departure_id),
                "group_id": str(group_id) if group_id else None,
                "trip_type": trip_type.value,
                "participant_count": participant_count,
                "total_amount": total_amount,
                "user_id": actor.user_id
            }
        )

        return await self.get_booking_by_id_or_raise(booking.id)

    async def get_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        """
        Get a booking visible to the actor.

        Admins see every booking; anyone else sees only their own, others are
        reported as missing.

        Raises:
            NotFoundError: If booking not found or not visible
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)

        if not (actor.is_admin or actor.owns(booking.user_id)):
            logger.warning(
                "Booking access denied",
                extra={"booking_id": str(booking_id), "actor_id": actor.user_id}
            )
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        return booking

    async def transition_booking(self, booking_id: UUID, target: BookingStatus, actor: Actor) -> Booking:
        """
        Drive a booking along its lifecycle.

        Args:
            booking_id: Booking to transition
            target: Desired status
            actor: Who is driving the change

        Returns:
            Updated booking

        Raises:
            NotFoundError: If booking not found
            InvalidTransitionError: If the move is not an edge of the lifecycle
            ForbiddenError: If the actor may not make this move
        """
        try:
            booking = await self.get_booking_for_update(booking_id)
            await self.state_machine.transition(booking, target, actor)
            await self.db.commit()
        except ProblemDetailsException:
            await self.db.rollback()
            raise

        return await self.get_booking_by_id_or_raise(booking_id)

    async def cancel_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        """Cancel a booking; releases its group when it holds one."""
        return await self.transition_booking(booking_id, BookingStatus.CANCELLED, actor)

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        """Get booking with participants loaded, raising NotFoundError if missing."""
        stmt = (
            select(Booking)
            .options(selectinload(Booking.participants).selectinload(BookingParticipant.participant))
            .where(Booking.id == booking_id)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()

        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        return booking

    async def get_booking_for_update(self, booking_id: UUID) -> Booking:
        """Get booking with its row locked for the rest of the transaction."""
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()

        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        return booking

    async def get_booking_by_code(self, code: str) -> Booking | None:
        """Get booking by its human-shareable code."""
        stmt = select(Booking).where(Booking.code == code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
