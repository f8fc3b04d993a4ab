"""Departure availability Pydantic schemas."""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.tour_package import TripType


class AvailabilityRequest(BaseModel):
    """Request schema for a departure's capacity snapshot."""

    departure_id: UUID = Field(..., description="Departure to inspect")


class GroupAvailability(BaseModel):
    """Exclusive group slot of a private trip."""

    group_id: str
    group_number: int = Field(..., ge=1)
    price: int = Field(..., ge=0, description="Group price in IDR")
    max_participants: int = Field(..., ge=1)
    is_booked: bool


class Availability(BaseModel):
    """Capacity snapshot, recomputed on every request."""

    departure_id: str
    trip_type: TripType
    max_participants: Optional[int] = Field(None, description="Seat pool size (open trips)")
    seats_taken: int = Field(0, ge=0, description="Seats held by active bookings (open trips)")
    seats_remaining: Optional[int] = Field(None, ge=0, description="Seats left (open trips)")
    groups: List[GroupAvailability] = Field(default_factory=list, description="Group slots (private trips)")
