"""Application factory for the tour reservation API."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import close_db, engine, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import (
    admin_router,
    booking_router,
    custom_request_router,
    departure_router,
    health_router,
    metrics_router,
    payment_router,
    probe_router,
)
from .workers.manager import worker_manager

setup_structured_logging()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

API_ROUTERS = (
    probe_router,
    health_router,
    departure_router,
    booking_router,
    payment_router,
    custom_request_router,
    admin_router,
    metrics_router,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Wire up telemetry and the schema, then run the expiry worker for the
    lifetime of the app. The worker stays off under ENVIRONMENT=test so tests
    drive sweeps explicitly.
    """
    run_workers = settings.environment != "test"
    logger.info(
        "Starting reservation core",
        extra={"environment": settings.environment, "run_workers": run_workers}
    )

    setup_tracing()
    setup_metrics()
    instrument_sqlalchemy(engine)

    try:
        await init_db()
    except Exception:
        logger.error("Database initialisation failed", exc_info=True)
        raise

    if run_workers:
        await worker_manager.start_all()

    yield

    logger.info("Shutting down reservation core")
    try:
        if run_workers:
            await worker_manager.stop_all()
    finally:
        await close_db()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Tour Reservation API",
        description=(
            "RPC-over-HTTP API for tour bookings on open trips and private groups, "
            "custom tour requests, and Midtrans payments"
        ),
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )
    setup_middleware(app, enable_logging=True)
    instrument_fastapi(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    for router in API_ROUTERS:
        app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "booking_core.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
