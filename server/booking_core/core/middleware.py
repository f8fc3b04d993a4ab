"""Custom middleware for request correlation, access logging and request metrics."""

import logging
import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .observability import REQUEST_COUNT, REQUEST_DURATION

logger = logging.getLogger(__name__)

# Bodies of these paths carry payment data and are never logged
SENSITIVE_PATHS = ("/v1/payment/webhook",)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each request.

    The request ID is either taken from the X-Request-ID header or generated,
    bound into the structlog context for the duration of the request, and
    echoed back on the response.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[self.header_name] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs HTTP requests and records request metrics.

    Request bodies are only logged when enabled, and never for
    :data:`SENSITIVE_PATHS`.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        skip_paths: Optional[list] = None,
    ):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.skip_paths = skip_paths or ["/health", "/ready", "/metrics", "/favicon.ico"]

    def _should_log(self, path: str) -> bool:
        return path not in self.skip_paths

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self._should_log(path):
            return await call_next(request)

        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", "unknown")

        log_data = {
            "event": "request_started",
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "client_ip": self._get_client_ip(request),
            "user_agent": request.headers.get("User-Agent", "unknown"),
            "content_length": request.headers.get("Content-Length"),
        }

        if self.log_request_body and request.method == "POST" and path not in SENSITIVE_PATHS:
            body = await request.body()
            if body:
                log_data["request_body"] = body.decode("utf-8", errors="replace")[:1000]

        logger.info("HTTP request started", extra=log_data)

        error = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            status_code = 500
            error = str(e)
            response = JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "request_id": request_id}
            )

        duration = time.perf_counter() - start_time
        route = request.scope.get("route")
        endpoint = getattr(route, "path", path)

        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

        log_data.update({
            "event": "request_completed",
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 2),
        })
        if error:
            log_data["error"] = error

        if status_code >= 500:
            logger.error("HTTP request completed with server error", extra=log_data)
        elif status_code >= 400:
            logger.warning("HTTP request completed with client error", extra=log_data)
        else:
            logger.info("HTTP request completed successfully", extra=log_data)

        return response


def setup_middleware(app, enable_logging: bool = True) -> None:
    """
    Setup all middleware on the FastAPI app.

    Args:
        app: FastAPI application instance
        enable_logging: Whether to enable request logging middleware
    """
    # Last added runs first
    if enable_logging:
        app.add_middleware(LoggingMiddleware, log_request_body=settings.debug)

    app.add_middleware(RequestIDMiddleware)
