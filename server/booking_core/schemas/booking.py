"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..models.booking import BookingStatus
from ..models.participant import Gender
from ..models.tour_package import TripType


class ParticipantInput(BaseModel):
    """
    One traveller on a booking.

    Either reference a saved profile with ``participant_id`` or describe the
    traveller inline; inline profiles are matched against the customer's saved
    profiles and reused when they match.
    """

    participant_id: Optional[UUID] = Field(None, description="Saved participant profile to reuse")
    full_name: Optional[str] = Field(None, min_length=1, max_length=255, description="Traveller full name")
    gender: Optional[Gender] = Field(None, description="Traveller gender")
    birth_date: Optional[date] = Field(None, description="Traveller date of birth")
    id_number: Optional[str] = Field(None, max_length=32, description="National ID or passport number")
    phone: Optional[str] = Field(None, max_length=32, description="Contact phone number")
    email: Optional[str] = Field(None, max_length=255, description="Contact email")
    domicile: Optional[str] = Field(None, max_length=100, description="City of residence")
    health_history: Optional[str] = Field(None, description="Relevant medical notes")

    @model_validator(mode="after")
    def require_reference_or_profile(self) -> "ParticipantInput":
        if self.participant_id is None and not self.full_name:
            raise ValueError("Either participant_id or full_name is required")
        return self


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking."""

    departure_id: UUID = Field(..., description="Departure to book")
    group_id: Optional[UUID] = Field(None, description="Group to claim (private trips only)")
    participants: List[ParticipantInput] = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Travellers; the first one is the primary contact"
    )
    notes: Optional[str] = Field(None, max_length=2000, description="Free-form notes for the operator")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: UUID = Field(..., description="Booking to retrieve")


class TransitionBookingRequest(BaseModel):
    """Request schema for moving a booking to another status."""

    booking_id: UUID = Field(..., description="Booking to transition")
    target_status: BookingStatus = Field(..., description="Desired status")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: UUID = Field(..., description="Booking to cancel")


class Participant(BaseModel):
    """Participant on a booking."""

    id: str = Field(..., description="Participant profile ID")
    full_name: str = Field(..., description="Traveller full name")
    gender: Optional[Gender] = None
    birth_date: Optional[date] = None
    id_number: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_primary: bool = Field(False, description="Whether this is the booking's primary contact")


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    code: str = Field(..., description="Human-shareable booking code")
    user_id: str = Field(..., description="Owning customer")
    departure_id: str = Field(..., description="Booked departure")
    departure_group_id: Optional[str] = Field(None, description="Claimed group (private trips)")
    trip_type: TripType = Field(..., description="Trip type at booking time")
    status: BookingStatus = Field(..., description="Booking status")
    total_amount: int = Field(..., ge=0, description="Price snapshot in IDR")
    participant_count: int = Field(..., ge=1, description="Number of travellers")
    payment_deadline: datetime = Field(..., description="Unpaid bookings expire after this (UTC)")
    paid_at: Optional[datetime] = Field(None, description="When payment was confirmed (UTC)")
    payment_url: Optional[str] = Field(None, description="Hosted payment page")
    notes: Optional[str] = None
    participants: List[Participant] = Field(default_factory=list)
    allowed_transitions: List[BookingStatus] = Field(
        default_factory=list,
        description="Statuses reachable from the current one"
    )
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")

    class Config:
        from_attributes = True
