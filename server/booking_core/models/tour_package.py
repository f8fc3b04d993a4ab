"""Tour package model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

if TYPE_CHECKING:
    from .departure import Departure


class TripType(str, Enum):
    """How a package's departures divide their capacity."""
    OPEN_TRIP = "OPEN_TRIP"
    PRIVATE_TRIP = "PRIVATE_TRIP"


class TourPackage(Base):
    """Tour package; content fields live with the catalogue, not here."""

    __tablename__ = "tour_packages"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Package information
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    trip_type: Mapped[TripType] = mapped_column(String(20), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    # Relationships
    departures: Mapped[list["Departure"]] = relationship(
        "Departure",
        back_populates="package",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<TourPackage(id={self.id}, slug='{self.slug}', trip_type={self.trip_type})>"
