"""Health and service probe schemas."""

from datetime import datetime
from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    READY = "ready"


class HealthResponse(BaseModel):
    """Ping response schema."""

    status: HealthStatus = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current server time (ISO 8601)")
    version: str = Field(..., description="API version")


class ServiceHealth(BaseModel):
    """Liveness probe response."""

    status: HealthStatus
    service: str
    version: str
    environment: str


class ServiceReadiness(BaseModel):
    """Readiness probe response, with each background worker's running state."""

    status: HealthStatus
    service: str
    workers: Dict[str, bool] = Field(default_factory=dict)


class ServiceInfo(BaseModel):
    service: str
    version: str
    environment: str
    payment_provider: str
    payment_environment: str = Field(..., description="sandbox or production")
    features: Dict[str, bool] = Field(default_factory=dict)
