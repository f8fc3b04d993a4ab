"""Booking router for booking operations."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.actors import Actor
from ..core.database import get_db
from ..core.dependencies import CurrentActor
from ..core.exceptions import ProblemDetailsException
from ..models.booking import BookingStatus
from ..schemas.booking import (
    Booking,
    CancelBookingRequest,
    CreateBookingRequest,
    GetBookingRequest,
    Participant,
    TransitionBookingRequest,
)
from ..services.booking_service import BookingService
from ..services.booking_state_machine import BookingStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=str(booking_model.id),
        code=booking_model.code,
        user_id=booking_model.user_id,
        departure_id=str(booking_model.departure_id),
        departure_group_id=str(booking_model.departure_group_id) if booking_model.departure_group_id else None,
        trip_type=booking_model.trip_type,
        status=booking_model.status,
        total_amount=booking_model.total_amount,
        participant_count=booking_model.participant_count,
        payment_deadline=booking_model.payment_deadline,
        paid_at=booking_model.paid_at,
        payment_url=booking_model.payment_url,
        notes=booking_model.notes,
        participants=[
            Participant(
                id=str(link.participant.id),
                full_name=link.participant.full_name,
                gender=link.participant.gender,
                birth_date=link.participant.birth_date,
                id_number=link.participant.id_number,
                phone=link.participant.phone,
                email=link.participant.email,
                is_primary=link.is_primary
            )
            for link in booking_model.participants
        ],
        allowed_transitions=BookingStateMachine.allowed_targets(BookingStatus(booking_model.status)),
        created_at=booking_model.created_at
    )


@router.post("/create", response_model=Booking)
async def create_booking(
    request: CreateBookingRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Create a PENDING booking on a departure.

    Open trips take seats from the shared pool; private trips claim one
    exclusive group. Either way the admission and the booking are
    committed together.
    """
    booking_service = BookingService(db)

    try:
        booking = await booking_service.create_booking(request, actor)
        response_data = _convert_booking_to_schema(booking)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "departure_id": str(request.departure_id),
                "group_id": str(request.group_id) if request.group_id else None,
                "user_id": actor.user_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Get booking details.

    Customers can only see their own bookings.
    """
    booking_service = BookingService(db)

    try:
        booking = await booking_service.get_booking(request.booking_id, actor)
        response_data = _convert_booking_to_schema(booking)

        logger.info(
            "Booking retrieved successfully",
            extra={
                "booking_id": str(request.booking_id),
                "booking_code": booking.code
            }
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking retrieval",
            extra={
                "booking_id": str(request.booking_id),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/transition", response_model=Booking)
async def transition_booking(
    request: TransitionBookingRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Move a booking to another status along its lifecycle."""
    booking_service = BookingService(db)

    try:
        booking = await booking_service.transition_booking(request.booking_id, request.target_status, actor)
        response_data = _convert_booking_to_schema(booking)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking transition",
            extra={
                "booking_id": str(request.booking_id),
                "target_status": request.target_status.value,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Cancel a booking.

    Owners may cancel their own unpaid bookings; admins may also cancel
    bookings whose payment was already received.
    """
    booking_service = BookingService(db)

    try:
        booking = await booking_service.cancel_booking(request.booking_id, actor)
        response_data = _convert_booking_to_schema(booking)

        logger.info(
            "Booking cancelled successfully",
            extra={
                "booking_id": str(request.booking_id),
                "booking_code": booking.code,
                "actor_id": actor.user_id
            }
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking cancellation",
            extra={
                "booking_id": str(request.booking_id),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
