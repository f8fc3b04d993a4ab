"""Booking lifecycle as an explicit transition graph with per-edge authorization."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.actors import Actor, Role
from ..core.database import utcnow
from ..core.exceptions import ForbiddenError, InvalidTransitionError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from .capacity_ledger import CapacityLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Edge:
    """
    One legal status change.

    ``roles`` may drive the edge for any booking; ``owner_role`` may drive
    it only for bookings the actor owns.
    """

    source: BookingStatus
    target: BookingStatus
    roles: frozenset[Role]
    owner_role: Role | None = None

    def permits(self, actor: Actor, owner_id: str) -> bool:
        if actor.role in self.roles:
            return True
        return self.owner_role is not None and actor.role == self.owner_role and actor.owns(owner_id)


_ADMIN = frozenset({Role.ADMIN})
_ADMIN_OR_SYSTEM = frozenset({Role.ADMIN, Role.SYSTEM})

BOOKING_EDGES: dict[tuple[BookingStatus, BookingStatus], Edge] = {
    (edge.source, edge.target): edge
    for edge in (
        # Forward chain
        Edge(BookingStatus.PENDING, BookingStatus.PAYMENT_RECEIVED, _ADMIN_OR_SYSTEM),
        Edge(BookingStatus.PAYMENT_RECEIVED, BookingStatus.PROCESSED, _ADMIN),
        Edge(BookingStatus.PROCESSED, BookingStatus.ONGOING, _ADMIN),
        Edge(BookingStatus.ONGOING, BookingStatus.COMPLETED, _ADMIN),
        # Side-exits
        Edge(BookingStatus.PENDING, BookingStatus.CANCELLED, _ADMIN_OR_SYSTEM, owner_role=Role.CUSTOMER),
        Edge(BookingStatus.PAYMENT_RECEIVED, BookingStatus.CANCELLED, _ADMIN),
        Edge(BookingStatus.PENDING, BookingStatus.EXPIRED, frozenset({Role.SYSTEM})),
    )
}

ABSORBING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.EXPIRED})
TERMINAL_STATUSES = ABSORBING_STATUSES | {BookingStatus.COMPLETED}

# Statuses at or past PAYMENT_RECEIVED on the forward chain
PAID_STATUSES = frozenset({
    BookingStatus.PAYMENT_RECEIVED,
    BookingStatus.PROCESSED,
    BookingStatus.ONGOING,
    BookingStatus.COMPLETED,
})


class BookingStateMachine:
    """Applies status transitions to bookings inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = CapacityLedger(db)

    @staticmethod
    def allowed_targets(status: BookingStatus) -> list[BookingStatus]:
        return [target for (source, target) in BOOKING_EDGES if source == status]

    async def transition(self, booking: Booking, target: BookingStatus, actor: Actor) -> bool:
        """
        Move a booking to ``target`` on behalf of ``actor``.

        The caller owns the transaction: nothing is committed here. Entering
        CANCELLED or EXPIRED releases the booking's group in the same
        transaction; seats are released implicitly by the status change.

        Args:
            booking: Booking to transition (ideally loaded under a row lock)
            target: Desired status
            actor: Who is driving the change

        Returns:
            True if the status changed, False for an idempotent no-op

        Raises:
            InvalidTransitionError: If no edge leads from the current status to target
            ForbiddenError: If the actor may not drive that edge
        """
        current = BookingStatus(booking.status)
        target = BookingStatus(target)

        # Duplicate payment confirmations are absorbed
        if target == BookingStatus.PAYMENT_RECEIVED and current in PAID_STATUSES:
            if actor.role not in _ADMIN_OR_SYSTEM:
                raise ForbiddenError(
                    detail="Only an admin or the payment system may confirm payment",
                    required_roles=[role.value for role in _ADMIN_OR_SYSTEM]
                )
            logger.info(
                "Payment confirmation already applied",
                extra={"booking_id": str(booking.id), "status": current.value}
            )
            return False

        edge = None if current in TERMINAL_STATUSES else BOOKING_EDGES.get((current, target))
        if edge is None:
            logger.warning(
                "Booking transition rejected - no such edge",
                extra={
                    "booking_id": str(booking.id),
                    "from_status": current.value,
                    "to_status": target.value,
                    "actor_role": actor.role.value
                }
            )
            raise InvalidTransitionError(
                resource_type="booking",
                resource_id=str(booking.id),
                current=current.value,
                target=target.value
            )

        if not edge.permits(actor, booking.user_id):
            logger.warning(
                "Booking transition rejected - actor not permitted",
                extra={
                    "booking_id": str(booking.id),
                    "from_status": current.value,
                    "to_status": target.value,
                    "actor_id": actor.user_id,
                    "actor_role": actor.role.value
                }
            )
            required = [role.value for role in edge.roles]
            if edge.owner_role is not None:
                required.append(edge.owner_role.value)
            raise ForbiddenError(
                detail=f"Not permitted to move booking from {current.value} to {target.value}",
                required_roles=required
            )

        booking.status = target

        if target == BookingStatus.PAYMENT_RECEIVED and booking.paid_at is None:
            booking.paid_at = utcnow()

        if target in ABSORBING_STATUSES and booking.departure_group_id is not None:
            await self.ledger.release_group(booking.departure_group_id)

        self.db.add(booking)
        await self.db.flush()

        metrics_collector.record_transition("booking", current.value, target.value)
        logger.info(
            "Booking status changed",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": actor.user_id,
                "actor_role": actor.role.value
            }
        )

        return True
