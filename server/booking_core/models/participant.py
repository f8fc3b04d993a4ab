"""Participant profile model definition."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class Participant(Base):
    """Traveller profile owned by a customer and reused across bookings."""

    __tablename__ = "participants"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Owner (identity provider user id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Profile
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[Gender | None] = mapped_column(String(10), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    id_number: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    domicile: Mapped[str | None] = mapped_column(String(100), nullable=True)
    health_history: Mapped[str | None] = mapped_column(Text, nullable=True)

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
        CheckConstraint("length(full_name) > 0", name="ck_participant_full_name_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Participant(id={self.id}, user_id='{self.user_id}', full_name='{self.full_name}')>"
