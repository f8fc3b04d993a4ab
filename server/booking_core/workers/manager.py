"""Worker manager for coordinating background jobs."""

import asyncio
import logging
from typing import Dict

from ..core.config import settings
from .base import BaseWorker
from .booking_expiry_worker import BookingExpiryWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages background workers for the application.

    Coordinates starting, stopping, and monitoring of all background workers.
    """

    def __init__(self):
        self.workers: Dict[str, BaseWorker] = {}
        self._setup_workers()

    def _setup_workers(self) -> None:
        """Initialize all workers."""
        self.workers["booking_expiry"] = BookingExpiryWorker(
            interval_seconds=settings.expiry_sweep_interval_seconds,
            batch_size=settings.expiry_sweep_batch_size,
        )

        logger.info("Initialized workers", extra={"worker_count": len(self.workers)})

    async def start_all(self) -> None:
        """Start all workers."""
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error(f"Failed to start worker {name}: {e!s}", exc_info=True)

    async def stop_all(self) -> None:
        """Stop all workers gracefully."""
        names = list(self.workers)
        results = await asyncio.gather(
            *(worker.stop() for worker in self.workers.values()),
            return_exceptions=True
        )

        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping worker {name}: {result!s}")

        logger.info("All workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """Map of worker name to running status."""
        return {name: worker.is_running for name, worker in self.workers.items()}


# Global worker manager instance
worker_manager = WorkerManager()
