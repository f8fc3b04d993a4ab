"""Custom tour request lifecycle with negotiated-price bookkeeping."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.actors import Actor, Role
from ..core.exceptions import ForbiddenError, InvalidTransitionError, ValidationError
from ..core.observability import metrics_collector
from ..models.custom_request import CustomRequestStatus, CustomTourRequest, PriceEstimateHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestEdge:
    """
    One legal status change of a custom request.

    ``owner_role`` may drive the edge when the actor's id matches the
    request attribute named by ``owner_attr``.
    """

    source: CustomRequestStatus
    target: CustomRequestStatus
    roles: frozenset[Role]
    owner_role: Role | None = None
    owner_attr: str = "user_id"

    def permits(self, actor: Actor, request: CustomTourRequest) -> bool:
        if actor.role in self.roles:
            return True
        if self.owner_role is None or actor.role != self.owner_role:
            return False
        return actor.owns(getattr(request, self.owner_attr))


FORWARD_CHAIN = (
    CustomRequestStatus.PENDING,
    CustomRequestStatus.IN_REVIEW,
    CustomRequestStatus.ACCEPTED,
    CustomRequestStatus.PAID,
    CustomRequestStatus.PROCESSED,
    CustomRequestStatus.ONGOING,
    CustomRequestStatus.COMPLETED,
)

TERMINAL_STATUSES = frozenset({
    CustomRequestStatus.REJECTED,
    CustomRequestStatus.CANCELLED,
    CustomRequestStatus.COMPLETED,
})

_ADMIN = frozenset({Role.ADMIN})


def _build_edges() -> dict[tuple[CustomRequestStatus, CustomRequestStatus], RequestEdge]:
    edges = []
    for source, target in zip(FORWARD_CHAIN, FORWARD_CHAIN[1:]):
        if target == CustomRequestStatus.COMPLETED:
            # The assigned guide may close out the trip they ran
            edges.append(RequestEdge(source, target, _ADMIN, owner_role=Role.TOUR_GUIDE, owner_attr="tour_guide_id"))
        else:
            edges.append(RequestEdge(source, target, _ADMIN))

    for source in FORWARD_CHAIN:
        if source in TERMINAL_STATUSES:
            continue
        edges.append(RequestEdge(source, CustomRequestStatus.REJECTED, _ADMIN))
        edges.append(RequestEdge(source, CustomRequestStatus.CANCELLED, frozenset(), owner_role=Role.CUSTOMER))

    return {(edge.source, edge.target): edge for edge in edges}


CUSTOM_REQUEST_EDGES = _build_edges()


class CustomRequestStateMachine:
    """Applies status and negotiated-field changes inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def allowed_targets(status: CustomRequestStatus) -> list[CustomRequestStatus]:
        return [target for (source, target) in CUSTOM_REQUEST_EDGES if source == status]

    async def transition(
        self,
        request: CustomTourRequest,
        target: CustomRequestStatus,
        actor: Actor,
        *,
        estimated_price: int | None = None,
        estimate_notes: str | None = None,
        final_price: int | None = None,
        tour_guide_id: str | None = None,
        admin_notes: str | None = None,
    ) -> bool:
        """
        Move a custom request to ``target`` and apply the supplied fields.

        Targeting the current status updates fields only. A supplied
        ``estimated_price`` is appended to the price history and is only
        accepted when the request ends up IN_REVIEW.

        Returns:
            True if the status changed

        Raises:
            InvalidTransitionError: If the request is terminal or no edge leads to target
            ForbiddenError: If the actor may not drive the edge or edit the fields
            ValidationError: If a required negotiated field is missing or misplaced
        """
        current = CustomRequestStatus(request.status)
        target = CustomRequestStatus(target)
        has_admin_fields = any(
            value is not None
            for value in (estimated_price, estimate_notes, final_price, tour_guide_id, admin_notes)
        )

        if current in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                resource_type="custom request",
                resource_id=str(request.id),
                current=current.value,
                target=target.value
            )

        if target == current:
            if not actor.is_admin:
                raise ForbiddenError(
                    detail="Only an admin may update a custom request in place",
                    required_roles=[Role.ADMIN.value]
                )
        else:
            edge = CUSTOM_REQUEST_EDGES.get((current, target))
            if edge is None:
                raise InvalidTransitionError(
                    resource_type="custom request",
                    resource_id=str(request.id),
                    current=current.value,
                    target=target.value
                )
            if not edge.permits(actor, request):
                logger.warning(
                    "Custom request transition rejected - actor not permitted",
                    extra={
                        "request_id": str(request.id),
                        "from_status": current.value,
                        "to_status": target.value,
                        "actor_id": actor.user_id,
                        "actor_role": actor.role.value
                    }
                )
                raise ForbiddenError(
                    detail=f"Not permitted to move custom request from {current.value} to {target.value}"
                )

        if has_admin_fields and not actor.is_admin:
            raise ForbiddenError(
                detail="Only an admin may set prices, notes or the tour guide",
                required_roles=[Role.ADMIN.value]
            )

        in_review = CustomRequestStatus.IN_REVIEW in (current, target)
        if estimated_price is not None and not in_review:
            raise ValidationError(
                detail="A price estimate can only be recorded while the request is in review",
                errors={"estimated_price": f"not allowed when moving from {current.value} to {target.value}"}
            )

        if target == CustomRequestStatus.ACCEPTED and final_price is None and request.final_price is None:
            raise ValidationError(
                detail="A final price is required to accept a custom request",
                errors={"final_price": "required"}
            )

        if target == CustomRequestStatus.ONGOING and tour_guide_id is None and request.tour_guide_id is None:
            raise ValidationError(
                detail="A tour guide must be assigned before the tour starts",
                errors={"tour_guide_id": "required"}
            )

        if final_price is not None:
            request.final_price = final_price
        if tour_guide_id is not None:
            request.tour_guide_id = tour_guide_id
        if admin_notes is not None:
            request.admin_notes = admin_notes

        if estimated_price is not None:
            request.estimated_price = estimated_price
            self.db.add(PriceEstimateHistory(
                request_id=request.id,
                estimated_price=estimated_price,
                notes=estimate_notes,
                recorded_by=actor.user_id,
            ))

        request.status = target
        self.db.add(request)
        await self.db.flush()

        changed = target != current
        if changed:
            metrics_collector.record_transition("custom_request", current.value, target.value)

        logger.info(
            "Custom request updated",
            extra={
                "request_id": str(request.id),
                "request_code": request.request_code,
                "from_status": current.value,
                "to_status": target.value,
                "estimate_recorded": estimated_price is not None,
                "actor_id": actor.user_id,
                "actor_role": actor.role.value
            }
        )

        return changed
