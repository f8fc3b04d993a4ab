"""Departure and departure group model definitions."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

if TYPE_CHECKING:
    from .booking import Booking
    from .tour_package import TourPackage


class Departure(Base):
    """
    Dated, capacity-bearing instance of a tour package.

    Open-trip departures carry a shared seat pool (``max_participants``) and a
    per-person price. Private-trip departures carry neither; their capacity is
    the set of exclusive :class:`DepartureGroup` slots.

    Seats taken are never stored here; they are summed from active bookings.
    """

    __tablename__ = "departures"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign key to package
    package_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tour_packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Departure details
    departure_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    price_per_person: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)

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

    # Constraints
    __table_args__ = (
        CheckConstraint("price_per_person IS NULL OR price_per_person >= 0", name="ck_departure_price_non_negative"),
        CheckConstraint("max_participants IS NULL OR max_participants > 0", name="ck_departure_max_participants_positive"),
    )

    # Relationships
    package: Mapped["TourPackage"] = relationship("TourPackage", back_populates="departures")
    groups: Mapped[list["DepartureGroup"]] = relationship(
        "DepartureGroup",
        back_populates="departure",
        cascade="all, delete-orphan",
        order_by="DepartureGroup.group_number"
    )
    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="departure",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<Departure(id={self.id}, package_id={self.package_id}, "
            f"departure_date={self.departure_date}, max_participants={self.max_participants})>"
        )


class DepartureGroup(Base):
    """Exclusive slot of a private-trip departure; held by at most one active booking."""

    __tablename__ = "departure_groups"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign key to departure
    departure_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("departures.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Group details
    group_number: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)

    # Mutated only by compare-and-swap in the capacity ledger
    is_booked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_departure_group_price_non_negative"),
        CheckConstraint("max_participants > 0", name="ck_departure_group_max_participants_positive"),
        UniqueConstraint("departure_id", "group_number", name="uq_departure_group_number"),
    )

    # Relationships
    departure: Mapped["Departure"] = relationship("Departure", back_populates="groups")

    def __repr__(self) -> str:
        return (
            f"<DepartureGroup(id={self.id}, departure_id={self.departure_id}, "
            f"group_number={self.group_number}, is_booked={self.is_booked})>"
        )
