"""Background worker that expires unpaid bookings."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import get_session_factory
from ..services.expiry_sweeper import ExpirySweeper
from .base import BaseWorker

logger = logging.getLogger(__name__)


class BookingExpiryWorker(BaseWorker):
    """
    Periodically runs the expiry sweeper.

    The sweeper is stateless between runs, so a missed or failed iteration
    is simply picked up by the next one.
    """

    def __init__(
        self,
        interval_seconds: float = 300,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        batch_size: Optional[int] = None,
    ):
        super().__init__(name="BookingExpiry", interval_seconds=interval_seconds)
        self.sweeper = ExpirySweeper(session_factory or get_session_factory(), batch_size=batch_size)
        self.last_expired_count = 0

    async def process(self) -> None:
        self.last_expired_count = await self.sweeper.sweep()

        if self.last_expired_count > 0:
            logger.info(
                "Expired unpaid bookings",
                extra={"expired_count": self.last_expired_count, "worker": self.name}
            )
