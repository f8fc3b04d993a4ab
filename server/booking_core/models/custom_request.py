"""Custom tour request and price estimate history model definitions."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow


class CustomRequestStatus(str, Enum):
    """Custom request status enumeration."""
    PENDING = "PENDING"
    IN_REVIEW = "IN_REVIEW"
    ACCEPTED = "ACCEPTED"
    PAID = "PAID"
    PROCESSED = "PROCESSED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class CustomTourRequest(Base):
    """A customer's request for a bespoke tour, negotiated to a final price."""

    __tablename__ = "custom_tour_requests"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    request_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # What the customer asked for
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    duration: Mapped[str] = mapped_column(String(100), nullable=False)
    departure_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    meeting_point: Mapped[str] = mapped_column(String(255), nullable=False)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Negotiation state
    status: Mapped[CustomRequestStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CustomRequestStatus.PENDING,
        index=True
    )
    estimated_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tour_guide_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

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

    __table_args__ = (
        CheckConstraint("participant_count > 0", name="ck_custom_request_participant_count_positive"),
        CheckConstraint("estimated_price IS NULL OR estimated_price >= 0", name="ck_custom_request_estimate_non_negative"),
        CheckConstraint("final_price IS NULL OR final_price >= 0", name="ck_custom_request_final_price_non_negative"),
    )

    # Relationships
    price_history: Mapped[list["PriceEstimateHistory"]] = relationship(
        "PriceEstimateHistory",
        back_populates="request",
        order_by="PriceEstimateHistory.created_at"
    )

    def __repr__(self) -> str:
        return f"<CustomTourRequest(id={self.id}, code='{self.request_code}', status={self.status})>"


class PriceEstimateHistory(Base):
    """Append-only record of each price estimate offered during review."""

    __tablename__ = "price_estimate_history"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    request_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("custom_tour_requests.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    estimated_price: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[str] = mapped_column(String(128), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint("estimated_price >= 0", name="ck_price_estimate_non_negative"),
    )

    # Relationships
    request: Mapped["CustomTourRequest"] = relationship("CustomTourRequest", back_populates="price_history")

    def __repr__(self) -> str:
        return (
            f"<PriceEstimateHistory(id={self.id}, request_id={self.request_id}, "
            f"estimated_price={self.estimated_price}, created_at={self.created_at})>"
        )
