"""Custom tour request service for business logic operations."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.actors import Actor, Role
from ..core.database import to_naive_utc
from ..core.exceptions import ForbiddenError, NotFoundError, ProblemDetailsException
from ..models.custom_request import CustomRequestStatus, CustomTourRequest
from ..schemas.custom_request import CreateCustomRequestRequest, TransitionCustomRequestRequest
from .booking_service import generate_reference_code
from .custom_request_state_machine import CustomRequestStateMachine

logger = logging.getLogger(__name__)

REQUEST_CODE_PREFIX = "CR"


class CustomRequestService:
    """Service for custom tour request operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.state_machine = CustomRequestStateMachine(db)

    async def create_custom_request(self, request: CreateCustomRequestRequest, actor: Actor) -> CustomTourRequest:
        """
        Open a new custom tour request in PENDING.

        Raises:
            ForbiddenError: If the actor is not a customer
        """
        if actor.role != Role.CUSTOMER:
            raise ForbiddenError(
                detail="Only customers may request custom tours",
                required_roles=[Role.CUSTOMER.value]
            )

        request_code = generate_reference_code(REQUEST_CODE_PREFIX)
        while await self._get_by_code(request_code):
            request_code = generate_reference_code(REQUEST_CODE_PREFIX)

        custom_request = CustomTourRequest(
            request_code=request_code,
            user_id=actor.user_id,
            destination=request.destination,
            duration=request.duration,
            departure_date=to_naive_utc(request.departure_date),
            meeting_point=request.meeting_point,
            participant_count=request.participant_count,
            notes=request.notes,
            status=CustomRequestStatus.PENDING,
        )

        self.db.add(custom_request)
        await self.db.commit()

        logger.info(
            "Custom request created",
            extra={
                "request_id": str(custom_request.id),
                "request_code": request_code,
                "user_id": actor.user_id,
                "participant_count": request.participant_count
            }
        )

        return await self.get_custom_request_by_id_or_raise(custom_request.id)

    async def get_custom_request(self, request_id: UUID, actor: Actor) -> CustomTourRequest:
        """
        Get a custom request with its price history, if visible to the actor.

        Admins see every request; customers see their own; tour guides see the
        requests they are assigned to.

        Raises:
            NotFoundError: If the request is missing or not visible
        """
        custom_request = await self.get_custom_request_by_id_or_raise(request_id)

        if actor.is_admin:
            return custom_request
        if actor.role == Role.CUSTOMER and actor.owns(custom_request.user_id):
            return custom_request
        if actor.role == Role.TOUR_GUIDE and actor.owns(custom_request.tour_guide_id):
            return custom_request

        raise NotFoundError(resource_type="custom request", resource_id=str(request_id))

    async def transition_custom_request(
        self,
        request: TransitionCustomRequestRequest,
        actor: Actor,
    ) -> CustomTourRequest:
        """
        Move a custom request and apply negotiated fields in one transaction.

        Raises:
            NotFoundError: If the request does not exist
            InvalidTransitionError: If the move is not an edge of the lifecycle
            ForbiddenError: If the actor may not make this move
            ValidationError: If required negotiated fields are missing
        """
        try:
            custom_request = await self._get_for_update(request.request_id)
            await self.state_machine.transition(
                custom_request,
                request.target_status,
                actor,
                estimated_price=request.estimated_price,
                estimate_notes=request.estimate_notes,
                final_price=request.final_price,
                tour_guide_id=request.tour_guide_id,
                admin_notes=request.admin_notes,
            )
            await self.db.commit()
        except ProblemDetailsException:
            await self.db.rollback()
            raise

        return await self.get_custom_request_by_id_or_raise(request.request_id)

    async def get_custom_request_by_id_or_raise(self, request_id: UUID) -> CustomTourRequest:
        stmt = (
            select(CustomTourRequest)
            .options(selectinload(CustomTourRequest.price_history))
            .where(CustomTourRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        custom_request = result.scalar_one_or_none()

        if not custom_request:
            raise NotFoundError(resource_type="custom request", resource_id=str(request_id))

        return custom_request

    async def _get_for_update(self, request_id: UUID) -> CustomTourRequest:
        stmt = (
            select(CustomTourRequest)
            .where(CustomTourRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        custom_request = result.scalar_one_or_none()

        if not custom_request:
            raise NotFoundError(resource_type="custom request", resource_id=str(request_id))

        return custom_request

    async def _get_by_code(self, request_code: str) -> CustomTourRequest | None:
        stmt = select(CustomTourRequest).where(CustomTourRequest.request_code == request_code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
