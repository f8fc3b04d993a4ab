"""Health check and service probe routers."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.database import utcnow
from ..schemas.health import HealthResponse, HealthStatus, ServiceHealth, ServiceInfo, ServiceReadiness
from ..workers.manager import worker_manager

logger = logging.getLogger(__name__)

SERVICE_NAME = "booking-core"

router = APIRouter(prefix="/v1/health", tags=["health"])

# Unversioned probes for load balancers and orchestrators
probe_router = APIRouter(tags=["health"])


@router.post("/ping", response_model=HealthResponse)
async def health_ping() -> JSONResponse:
    """
    Health check endpoint.

    Returns current service status and timestamp.
    """
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=utcnow(),
        version=settings.api_version
    )

    logger.debug("Health check requested", extra={"health_status": response_data.status.value})

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@probe_router.get("/health", response_model=ServiceHealth, summary="Liveness probe")
async def liveness() -> ServiceHealth:
    return ServiceHealth(
        status=HealthStatus.HEALTHY,
        service=SERVICE_NAME,
        version=settings.api_version,
        environment=settings.environment,
    )


@probe_router.get("/ready", response_model=ServiceReadiness, summary="Readiness probe")
async def readiness() -> ServiceReadiness:
    """Ready once the app is serving; reports whether each background worker is running."""
    return ServiceReadiness(
        status=HealthStatus.READY,
        service=SERVICE_NAME,
        workers=worker_manager.get_worker_status(),
    )


@probe_router.get("/info", response_model=ServiceInfo, summary="Service information")
async def service_info() -> ServiceInfo:
    return ServiceInfo(
        service=SERVICE_NAME,
        version=settings.api_version,
        environment=settings.environment,
        payment_provider="midtrans",
        payment_environment="production" if settings.midtrans_is_production else "sandbox",
        features={
            "open_trips": True,
            "private_groups": True,
            "custom_requests": True,
            "expiry_sweeper": True,
            "problem_details": True,
            "tracing": True,
        },
    )
