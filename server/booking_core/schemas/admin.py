"""Administrative operation schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SweepExpiredRequest(BaseModel):
    """Request schema for an on-demand expiry sweep."""

    now: Optional[datetime] = Field(None, description="Reference time (UTC); defaults to the server clock")


class SweepExpiredResponse(BaseModel):
    """Outcome of an expiry sweep."""

    expired_count: int = Field(..., ge=0, description="Bookings moved to EXPIRED")
    swept_at: datetime = Field(..., description="Reference time used (UTC)")
