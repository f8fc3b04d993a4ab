"""Booking and booking participant model definitions."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow
from .tour_package import TripType

if TYPE_CHECKING:
    from .departure import Departure, DepartureGroup
    from .participant import Participant


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PROCESSED = "PROCESSED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


# Statuses that no longer hold seats or a group.
INACTIVE_BOOKING_STATUSES = (BookingStatus.CANCELLED, BookingStatus.EXPIRED)


class Booking(Base):
    """Booking entity: one customer's paid reservation on a departure."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Human-shareable code, also embedded in payment order ids
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    # Owner (identity provider user id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Foreign keys
    departure_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("departures.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    departure_group_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("departure_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Booking details
    trip_type: Mapped[TripType] = mapped_column(String(20), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Payment details
    payment_deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)

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
        CheckConstraint("participant_count > 0", name="ck_booking_participant_count_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_amount_non_negative"),
        CheckConstraint("length(code) > 0", name="ck_booking_code_not_empty"),
        CheckConstraint("length(user_id) > 0", name="ck_booking_user_id_not_empty"),
    )

    # Relationships
    departure: Mapped["Departure"] = relationship("Departure", back_populates="bookings")
    departure_group: Mapped["DepartureGroup | None"] = relationship("DepartureGroup")
    participants: Mapped[list["BookingParticipant"]] = relationship(
        "BookingParticipant",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingParticipant.position"
    )

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_BOOKING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, code='{self.code}', departure_id={self.departure_id}, "
            f"participant_count={self.participant_count}, status={self.status})>"
        )


class BookingParticipant(Base):
    """Join row linking a booking to a reusable participant profile."""

    __tablename__ = "booking_participants"

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        primary_key=True
    )
    participant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("participants.id", ondelete="RESTRICT"),
        primary_key=True,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="participants")
    participant: Mapped["Participant"] = relationship("Participant")

    def __repr__(self) -> str:
        return (
            f"<BookingParticipant(booking_id={self.booking_id}, "
            f"participant_id={self.participant_id}, is_primary={self.is_primary})>"
        )
