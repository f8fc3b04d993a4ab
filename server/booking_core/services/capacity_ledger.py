"""Capacity ledger: transactional admission and release of departure capacity."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import CapacityExceededError, GroupAlreadyBookedError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import INACTIVE_BOOKING_STATUSES, Booking
from ..models.departure import Departure, DepartureGroup
from ..models.tour_package import TripType

logger = logging.getLogger(__name__)


@dataclass
class GroupAvailability:
    group_id: UUID
    group_number: int
    price: int
    max_participants: int
    is_booked: bool


@dataclass
class DepartureAvailability:
    """Point-in-time capacity snapshot of one departure."""

    departure_id: UUID
    trip_type: TripType
    max_participants: int | None = None
    seats_taken: int = 0
    seats_remaining: int | None = None
    groups: list[GroupAvailability] = field(default_factory=list)


class CapacityLedger:
    """
    Admission control for shared seats and exclusive groups.

    Every method runs inside the caller's transaction and never commits;
    the caller commits the booking insert together with the admission so a
    rejected or failed booking leaves no trace.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock_departure(self, departure_id: UUID) -> Departure:
        """
        Load a departure and lock its row for the rest of the transaction.

        Raises:
            NotFoundError: If the departure does not exist
        """
        stmt = (
            select(Departure)
            .options(selectinload(Departure.package))
            .where(Departure.id == departure_id)
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        departure = result.scalar_one_or_none()

        if not departure:
            raise NotFoundError(resource_type="departure", resource_id=str(departure_id))

        return departure

    async def seats_taken(self, departure_id: UUID) -> int:
        """Sum of participants over the departure's bookings that still hold seats."""
        stmt = (
            select(func.coalesce(func.sum(Booking.participant_count), 0))
            .where(Booking.departure_id == departure_id)
            .where(Booking.status.not_in([status.value for status in INACTIVE_BOOKING_STATUSES]))
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def reserve_seats(self, departure_id: UUID, count: int) -> Departure:
        """
        Admit ``count`` participants onto an open-trip departure.

        Args:
            departure_id: Departure to reserve on
            count: Number of seats requested

        Returns:
            The locked departure

        Raises:
            NotFoundError: If the departure does not exist
            ValidationError: If the departure has no shared seat pool
            CapacityExceededError: If the seats would overcommit the departure
        """
        if count < 1:
            raise ValidationError(detail="At least one seat must be requested")

        departure = await self.lock_departure(departure_id)

        if departure.package.trip_type != TripType.OPEN_TRIP or departure.max_participants is None:
            raise ValidationError(detail=f"Departure {departure_id} does not sell individual seats")

        taken = await self.seats_taken(departure_id)
        available = departure.max_participants - taken

        if taken + count > departure.max_participants:
            logger.warning(
                "Seat reservation rejected - insufficient capacity",
                extra={
                    "departure_id": str(departure_id),
                    "requested_seats": count,
                    "seats_taken": taken,
                    "max_participants": departure.max_participants
                }
            )
            metrics_collector.record_booking_rejected("capacity_exceeded")
            raise CapacityExceededError(
                departure_id=str(departure_id),
                requested_seats=count,
                available_seats=max(available, 0)
            )

        logger.debug(
            "Seats admitted",
            extra={
                "departure_id": str(departure_id),
                "requested_seats": count,
                "seats_remaining": available - count
            }
        )

        return departure

    async def reserve_group(self, group_id: UUID, departure_id: UUID | None = None) -> DepartureGroup:
        """
        Claim an exclusive private-trip group with a compare-and-swap update.

        Args:
            group_id: Group to claim
            departure_id: When given, the group must belong to this departure

        Returns:
            The claimed group

        Raises:
            NotFoundError: If the group does not exist (or not under the departure)
            GroupAlreadyBookedError: If another active booking already holds it
        """
        group = await self.db.get(DepartureGroup, group_id)
        if not group or (departure_id is not None and group.departure_id != departure_id):
            raise NotFoundError(resource_type="departure group", resource_id=str(group_id))

        stmt = (
            update(DepartureGroup)
            .where(DepartureGroup.id == group_id)
            .where(DepartureGroup.is_booked.is_(False))
            .values(is_booked=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        if result.rowcount == 0:
            logger.warning(
                "Group reservation rejected - already booked",
                extra={"group_id": str(group_id), "departure_id": str(group.departure_id)}
            )
            metrics_collector.record_booking_rejected("group_already_booked")
            raise GroupAlreadyBookedError(group_id=str(group_id))

        await self.db.refresh(group)
        return group

    async def release_group(self, group_id: UUID) -> None:
        """Unconditionally free a group; called when its booking is cancelled or expires."""
        stmt = (
            update(DepartureGroup)
            .where(DepartureGroup.id == group_id)
            .values(is_booked=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

        logger.info("Departure group released", extra={"group_id": str(group_id)})

    async def availability(self, departure_id: UUID) -> DepartureAvailability:
        """
        Read-only capacity snapshot, recomputed on every call.

        Raises:
            NotFoundError: If the departure does not exist
        """
        stmt = (
            select(Departure)
            .options(selectinload(Departure.package), selectinload(Departure.groups))
            .where(Departure.id == departure_id)
        )
        result = await self.db.execute(stmt)
        departure = result.scalar_one_or_none()

        if not departure:
            raise NotFoundError(resource_type="departure", resource_id=str(departure_id))

        snapshot = DepartureAvailability(
            departure_id=departure.id,
            trip_type=TripType(departure.package.trip_type),
        )

        if snapshot.trip_type == TripType.OPEN_TRIP:
            snapshot.max_participants = departure.max_participants
            snapshot.seats_taken = await self.seats_taken(departure_id)
            if departure.max_participants is not None:
                snapshot.seats_remaining = max(departure.max_participants - snapshot.seats_taken, 0)
        else:
            snapshot.groups = [
                GroupAvailability(
                    group_id=group.id,
                    group_number=group.group_number,
                    price=group.price,
                    max_participants=group.max_participants,
                    is_booked=group.is_booked,
                )
                for group in departure.groups
            ]

        return snapshot
