"""Expiry sweeper: reclaims capacity held by bookings left unpaid past their deadline."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.actors import SYSTEM_ACTOR
from ..core.config import settings
from ..core.database import utcnow
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from .booking_state_machine import BookingStateMachine

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Moves overdue PENDING bookings to EXPIRED.

    Each booking is expired in its own short transaction on a fresh session,
    so one failure never blocks the rest and a booking paid while the sweep
    is running is re-read under lock and skipped.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], batch_size: Optional[int] = None):
        self.session_factory = session_factory
        self.batch_size = batch_size or settings.expiry_sweep_batch_size

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Expire every PENDING booking whose payment deadline is before ``now``.

        Args:
            now: Reference time (naive UTC); defaults to the current time

        Returns:
            Number of bookings moved to EXPIRED by this call
        """
        now = now or utcnow()
        expired = 0
        failed: set[UUID] = set()

        while True:
            candidates = await self._find_overdue(now, exclude=failed)
            if not candidates:
                break

            for booking_id in candidates:
                try:
                    if await self._expire_one(booking_id, now):
                        expired += 1
                except Exception as e:
                    failed.add(booking_id)
                    logger.error(
                        "Failed to expire booking",
                        extra={"booking_id": str(booking_id), "error": str(e)},
                        exc_info=True
                    )

            if len(candidates) < self.batch_size:
                break

        if expired or failed:
            logger.info(
                "Expiry sweep completed",
                extra={"expired_count": expired, "failed_count": len(failed), "swept_at": now.isoformat()}
            )

        return expired

    async def _find_overdue(self, now: datetime, exclude: set[UUID]) -> list[UUID]:
        stmt = (
            select(Booking.id)
            .where(Booking.status == BookingStatus.PENDING.value)
            .where(Booking.payment_deadline < now)
            .order_by(Booking.payment_deadline)
            .limit(self.batch_size)
        )
        if exclude:
            stmt = stmt.where(Booking.id.not_in(exclude))

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars())

    async def _expire_one(self, booking_id: UUID, now: datetime) -> bool:
        async with self.session_factory() as session:
            stmt = select(Booking).where(Booking.id == booking_id).with_for_update()
            booking = (await session.execute(stmt)).scalar_one_or_none()

            # Paid, cancelled or already expired since the candidate scan
            if booking is None or booking.status != BookingStatus.PENDING or booking.payment_deadline >= now:
                await session.rollback()
                return False

            await BookingStateMachine(session).transition(booking, BookingStatus.EXPIRED, SYSTEM_ACTOR)
            await session.commit()

        metrics_collector.record_booking_expired()
        logger.info(
            "Booking expired",
            extra={"booking_id": str(booking_id), "deadline_passed_at": now.isoformat()}
        )
        return True
