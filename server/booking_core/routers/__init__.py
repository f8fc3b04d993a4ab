"""FastAPI routers package."""

from .admin import router as admin_router
from .booking import router as booking_router
from .custom_request import router as custom_request_router
from .departure import router as departure_router
from .health import probe_router
from .health import router as health_router
from .metrics import router as metrics_router
from .payment import router as payment_router

__all__ = [
    "admin_router",
    "booking_router",
    "custom_request_router",
    "departure_router",
    "health_router",
    "metrics_router",
    "payment_router",
    "probe_router",
]
