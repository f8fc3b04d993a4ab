"""Background workers."""

from .base import BaseWorker
from .booking_expiry_worker import BookingExpiryWorker
from .manager import WorkerManager, worker_manager

__all__ = ["BaseWorker", "BookingExpiryWorker", "WorkerManager", "worker_manager"]
