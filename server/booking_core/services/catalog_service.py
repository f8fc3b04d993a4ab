"""Catalogue service: packages, departures and private-trip groups."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import to_naive_utc
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models.booking import Booking
from ..models.departure import Departure, DepartureGroup
from ..models.tour_package import TourPackage, TripType

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for the capacity-bearing side of the catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_package(self, title: str, slug: str, trip_type: TripType) -> TourPackage:
        """
        Create a tour package.

        Raises:
            ConflictError: If a package with the same slug already exists
        """
        existing = (await self.db.execute(select(TourPackage).where(TourPackage.slug == slug))).scalar_one_or_none()
        if existing:
            raise ConflictError(
                detail=f"Package with slug '{slug}' already exists",
                conflicting_resource={"id": str(existing.id), "slug": existing.slug}
            )

        package = TourPackage(title=title, slug=slug, trip_type=TripType(trip_type))

        try:
            self.db.add(package)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(detail=f"Package with slug '{slug}' already exists") from e

        logger.info(
            "Package created",
            extra={"package_id": str(package.id), "slug": slug, "trip_type": package.trip_type}
        )
        return package

    async def create_departure(
        self,
        package_id: UUID,
        departure_date: datetime,
        price_per_person: Optional[int] = None,
        max_participants: Optional[int] = None,
    ) -> Departure:
        """
        Create a departure under a package.

        Open-trip departures need a seat price and pool size; private-trip
        departures take neither and get their capacity from groups.

        Raises:
            NotFoundError: If the package does not exist
            ValidationError: If the pricing does not fit the package's trip type
        """
        package = await self.get_package_or_raise(package_id)

        if package.trip_type == TripType.OPEN_TRIP:
            if price_per_person is None or max_participants is None:
                raise ValidationError(detail="Open-trip departures need price_per_person and max_participants")
        elif price_per_person is not None or max_participants is not None:
            raise ValidationError(detail="Private-trip departures are priced and sized per group")

        departure = Departure(
            package_id=package.id,
            departure_date=to_naive_utc(departure_date),
            price_per_person=price_per_person,
            max_participants=max_participants,
        )
        self.db.add(departure)
        await self.db.commit()

        logger.info(
            "Departure created",
            extra={
                "departure_id": str(departure.id),
                "package_id": str(package.id),
                "departure_date": departure.departure_date.isoformat(),
                "max_participants": max_participants
            }
        )
        return departure

    async def add_group(self, departure_id: UUID, group_number: int, price: int, max_participants: int) -> DepartureGroup:
        """
        Add an exclusive group slot to a private-trip departure.

        Raises:
            NotFoundError: If the departure does not exist
            ValidationError: If the departure belongs to an open trip
            ConflictError: If the group number is already taken
        """
        departure = await self.db.get(Departure, departure_id)
        if not departure:
            raise NotFoundError(resource_type="departure", resource_id=str(departure_id))

        package = await self.get_package_or_raise(departure.package_id)
        if package.trip_type != TripType.PRIVATE_TRIP:
            raise ValidationError(detail="Only private-trip departures have groups")

        group = DepartureGroup(
            departure_id=departure_id,
            group_number=group_number,
            price=price,
            max_participants=max_participants,
            is_booked=False,
        )

        try:
            self.db.add(group)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Departure {departure_id} already has a group {group_number}"
            ) from e

        return group

    async def change_trip_type(self, package_id: UUID, trip_type: TripType) -> TourPackage:
        """
        Switch a package between open and private trips.

        Raises:
            NotFoundError: If the package does not exist
            ConflictError: If any departure of the package already has bookings
        """
        package = await self.get_package_or_raise(package_id)

        has_bookings = await self.db.scalar(
            select(
                exists().where(
                    Booking.departure_id == Departure.id,
                    Departure.package_id == package_id
                )
            )
        )
        if has_bookings:
            logger.warning(
                "Trip type change rejected - package has bookings",
                extra={"package_id": str(package_id), "trip_type": TripType(trip_type).value}
            )
            raise ConflictError(
                detail=f"Package {package_id} already has bookings; its trip type is fixed",
                conflicting_resource={"package_id": str(package_id), "trip_type": package.trip_type}
            )

        package.trip_type = TripType(trip_type)
        await self.db.commit()
        return package

    async def update_departure_price(self, departure_id: UUID, price_per_person: int) -> Departure:
        """Reprice an open-trip departure; existing bookings keep their price snapshot."""
        if price_per_person < 0:
            raise ValidationError(detail="Price must not be negative")

        departure = await self.db.get(Departure, departure_id)
        if not departure:
            raise NotFoundError(resource_type="departure", resource_id=str(departure_id))
        if departure.price_per_person is None:
            raise ValidationError(detail="Only open-trip departures have a seat price")

        departure.price_per_person = price_per_person
        await self.db.commit()
        return departure

    async def update_group_price(self, group_id: UUID, price: int) -> DepartureGroup:
        """Reprice a private-trip group; existing bookings keep their price snapshot."""
        if price < 0:
            raise ValidationError(detail="Price must not be negative")

        group = await self.db.get(DepartureGroup, group_id)
        if not group:
            raise NotFoundError(resource_type="departure group", resource_id=str(group_id))

        group.price = price
        await self.db.commit()
        return group

    async def get_package_or_raise(self, package_id: UUID) -> TourPackage:
        package = await self.db.get(TourPackage, package_id)
        if not package:
            raise NotFoundError(resource_type="package", resource_id=str(package_id))
        return package
