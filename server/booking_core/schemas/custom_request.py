"""Custom tour request Pydantic schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.custom_request import CustomRequestStatus


class CreateCustomRequestRequest(BaseModel):
    """Request schema for asking for a bespoke tour."""

    destination: str = Field(..., min_length=1, max_length=255, description="Where the customer wants to go")
    duration: str = Field(..., min_length=1, max_length=100, description="Desired trip length")
    departure_date: datetime = Field(..., description="Desired start date")
    meeting_point: str = Field(..., min_length=1, max_length=255, description="Pick-up location")
    participant_count: int = Field(..., ge=1, le=500, description="Number of travellers")
    notes: Optional[str] = Field(None, max_length=2000, description="Anything else the operator should know")


class GetCustomRequestRequest(BaseModel):
    """Request schema for getting a custom request."""

    request_id: UUID = Field(..., description="Custom request to retrieve")


class TransitionCustomRequestRequest(BaseModel):
    """Request schema for moving a custom request and updating its negotiated fields."""

    request_id: UUID = Field(..., description="Custom request to transition")
    target_status: CustomRequestStatus = Field(..., description="Desired status (may equal the current one)")
    estimated_price: Optional[int] = Field(None, ge=0, description="New price estimate (IN_REVIEW only)")
    estimate_notes: Optional[str] = Field(None, max_length=2000, description="Notes recorded with the estimate")
    final_price: Optional[int] = Field(None, ge=0, description="Agreed price")
    tour_guide_id: Optional[str] = Field(None, min_length=1, max_length=128, description="Assigned tour guide")
    admin_notes: Optional[str] = Field(None, max_length=2000, description="Operator notes")


class PriceEstimate(BaseModel):
    """One entry of the price negotiation history."""

    id: str
    estimated_price: int = Field(..., ge=0)
    notes: Optional[str] = None
    recorded_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class CustomRequest(BaseModel):
    """Custom request response schema."""

    id: str = Field(..., description="Unique request ID")
    request_code: str = Field(..., description="Human-shareable request code")
    user_id: str = Field(..., description="Owning customer")
    destination: str
    duration: str
    departure_date: datetime
    meeting_point: str
    participant_count: int = Field(..., ge=1)
    notes: Optional[str] = None
    status: CustomRequestStatus = Field(..., description="Request status")
    estimated_price: Optional[int] = None
    final_price: Optional[int] = None
    tour_guide_id: Optional[str] = None
    admin_notes: Optional[str] = None
    price_history: List[PriceEstimate] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
