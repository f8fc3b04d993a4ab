"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "tour-reservation-core"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Total bookings admitted',
    ['trip_type'],
    registry=REGISTRY
)

BOOKINGS_REJECTED = Counter(
    'bookings_rejected_total',
    'Total booking requests rejected by the capacity ledger',
    ['reason'],
    registry=REGISTRY
)

STATUS_TRANSITIONS = Counter(
    'status_transitions_total',
    'Total applied status transitions',
    ['resource', 'from_status', 'to_status'],
    registry=REGISTRY
)

BOOKINGS_EXPIRED = Counter(
    'bookings_expired_total',
    'Total unpaid bookings reclaimed by the expiry sweeper',
    registry=REGISTRY
)

PAYMENT_WEBHOOKS = Counter(
    'payment_webhooks_total',
    'Total payment notifications by outcome',
    ['outcome'],
    registry=REGISTRY
)

PAYMENT_TRANSACTIONS = Counter(
    'payment_transactions_total',
    'Total payment transaction requests by outcome',
    ['outcome'],
    registry=REGISTRY
)

PROVIDER_ERRORS = Counter(
    'payment_provider_errors_total',
    'Total payment provider call failures',
    ['operation'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, settings.log_level))


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": settings.api_version,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())
    trace.set_tracer_provider(provider)

    if settings.otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )

    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics export (Prometheus scraping works regardless)."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_booking_created(trip_type: str):
        BOOKINGS_CREATED.labels(trip_type=trip_type).inc()

    @staticmethod
    def record_booking_rejected(reason: str):
        """Record an admission refused for capacity or slot reasons."""
        BOOKINGS_REJECTED.labels(reason=reason).inc()

    @staticmethod
    def record_transition(resource: str, from_status: str, to_status: str):
        STATUS_TRANSITIONS.labels(
            resource=resource,
            from_status=from_status,
            to_status=to_status
        ).inc()

    @staticmethod
    def record_booking_expired():
        BOOKINGS_EXPIRED.inc()

    @staticmethod
    def record_webhook(outcome: str):
        """Record a payment notification outcome (applied, ignored, rejected...)."""
        PAYMENT_WEBHOOKS.labels(outcome=outcome).inc()

    @staticmethod
    def record_payment_transaction(outcome: str):
        PAYMENT_TRANSACTIONS.labels(outcome=outcome).inc()

    @staticmethod
    def record_provider_error(operation: str):
        PROVIDER_ERRORS.labels(operation=operation).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
