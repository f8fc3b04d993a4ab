"""Custom tour request router."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.actors import Actor
from ..core.database import get_db
from ..core.dependencies import CurrentActor
from ..core.exceptions import ProblemDetailsException
from ..schemas.custom_request import (
    CreateCustomRequestRequest,
    CustomRequest,
    GetCustomRequestRequest,
    PriceEstimate,
    TransitionCustomRequestRequest,
)
from ..services.custom_request_service import CustomRequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/custom-request", tags=["custom-request"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_custom_request_to_schema(request_model) -> CustomRequest:
    """Convert custom request model to schema."""
    return CustomRequest(
        id=str(request_model.id),
        request_code=request_model.request_code,
        user_id=request_model.user_id,
        destination=request_model.destination,
        duration=request_model.duration,
        departure_date=request_model.departure_date,
        meeting_point=request_model.meeting_point,
        participant_count=request_model.participant_count,
        notes=request_model.notes,
        status=request_model.status,
        estimated_price=request_model.estimated_price,
        final_price=request_model.final_price,
        tour_guide_id=request_model.tour_guide_id,
        admin_notes=request_model.admin_notes,
        price_history=[
            PriceEstimate(
                id=str(entry.id),
                estimated_price=entry.estimated_price,
                notes=entry.notes,
                recorded_by=entry.recorded_by,
                created_at=entry.created_at
            )
            for entry in request_model.price_history
        ],
        created_at=request_model.created_at,
        updated_at=request_model.updated_at
    )


@router.post("/create", response_model=CustomRequest)
async def create_custom_request(
    request: CreateCustomRequestRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Ask the operator for a bespoke tour."""
    service = CustomRequestService(db)

    try:
        custom_request = await service.create_custom_request(request, actor)
        response_data = _convert_custom_request_to_schema(custom_request)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in custom request creation",
            extra={"user_id": actor.user_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=CustomRequest)
async def get_custom_request(
    request: GetCustomRequestRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get a custom request visible to the caller."""
    service = CustomRequestService(db)

    try:
        custom_request = await service.get_custom_request(request.request_id, actor)
        response_data = _convert_custom_request_to_schema(custom_request)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in custom request retrieval",
            extra={"request_id": str(request.request_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/transition", response_model=CustomRequest)
async def transition_custom_request(
    request: TransitionCustomRequestRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Move a custom request and update its negotiated fields.

    The target may equal the current status to update prices, notes or
    the assigned guide without moving the request.
    """
    service = CustomRequestService(db)

    try:
        custom_request = await service.transition_custom_request(request, actor)
        response_data = _convert_custom_request_to_schema(custom_request)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in custom request transition",
            extra={
                "request_id": str(request.request_id),
                "target_status": request.target_status.value,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
