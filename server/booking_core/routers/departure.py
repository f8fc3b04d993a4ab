"""Departure router for capacity lookups."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.actors import Actor
from ..core.database import get_db
from ..core.dependencies import CurrentActor
from ..core.exceptions import ProblemDetailsException
from ..schemas.departure import Availability, AvailabilityRequest, GroupAvailability
from ..services.capacity_ledger import CapacityLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/departure", tags=["departure"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/availability", response_model=Availability)
async def get_availability(
    request: AvailabilityRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Get a departure's remaining capacity.

    Seats are recounted from active bookings on every request.
    """
    ledger = CapacityLedger(db)

    try:
        snapshot = await ledger.availability(request.departure_id)
        response_data = Availability(
            departure_id=str(snapshot.departure_id),
            trip_type=snapshot.trip_type,
            max_participants=snapshot.max_participants,
            seats_taken=snapshot.seats_taken,
            seats_remaining=snapshot.seats_remaining,
            groups=[
                GroupAvailability(
                    group_id=str(group.group_id),
                    group_number=group.group_number,
                    price=group.price,
                    max_participants=group.max_participants,
                    is_booked=group.is_booked
                )
                for group in snapshot.groups
            ]
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in availability lookup",
            extra={"departure_id": str(request.departure_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
