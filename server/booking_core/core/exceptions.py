"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import uuid
from typing import Any, ClassVar, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .database import utcnow

PROBLEM_TYPE_BASE = "https://example.com/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt

    Subclasses declare their problem type through class attributes; the
    machine-readable ``code`` is what callers branch on.
    """

    status: ClassVar[int] = 500
    title: ClassVar[str] = "Internal Server Error"
    code: ClassVar[Optional[str]] = None
    slug: ClassVar[Optional[str]] = None
    retryable: ClassVar[Optional[bool]] = None

    def __init__(
        self,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.problem_details: Dict[str, Any] = {
            "type": f"{PROBLEM_TYPE_BASE}/{self.slug}" if self.slug else f"about:blank#{self.status}",
            "title": self.title,
            "status": self.status,
        }
        if detail:
            self.problem_details["detail"] = detail
        if instance:
            self.problem_details["instance"] = instance
        if self.code:
            self.problem_details["code"] = self.code
        if self.retryable is not None:
            self.problem_details["retryable"] = self.retryable
        self.problem_details.update(extensions or {})

        super().__init__(status_code=self.status, detail=self.problem_details, headers=headers)


class ValidationError(ProblemDetailsException):
    """Input is well-formed JSON but breaks a business rule."""

    status = 400
    title = "Validation Error"
    code = "VALIDATION_ERROR"
    slug = "validation-error"

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, instance, extensions={"errors": errors} if errors else None)


class AuthenticationError(ProblemDetailsException):
    status = 401
    title = "Authentication Required"
    code = "AUTHENTICATION_REQUIRED"
    slug = "authentication-required"

    def __init__(self, detail: str = "Authentication credentials are required", instance: Optional[str] = None):
        super().__init__(detail, instance, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(ProblemDetailsException):
    """The acting user may not perform the operation."""

    status = 403
    title = "Forbidden"
    code = "FORBIDDEN"
    slug = "forbidden"

    def __init__(
        self,
        detail: str = "Insufficient permissions to perform this operation",
        required_roles: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, instance, extensions={"required_roles": required_roles} if required_roles else None)


class NotFoundError(ProblemDetailsException):
    """The resource does not exist or is not visible to the caller."""

    status = 404
    title = "Resource Not Found"
    code = "NOT_FOUND"
    slug = "resource-not-found"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            subject = f"{resource_type} with ID '{resource_id}'" if resource_id else resource_type
            detail = f"The requested {subject} could not be found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(detail, instance, extensions=extensions)


class ConflictError(ProblemDetailsException):
    """The request conflicts with the current state of a resource."""

    status = 409
    title = "Resource Conflict"
    code = "CONFLICT"
    slug = "resource-conflict"

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            detail,
            instance,
            extensions={"conflicting_resource": conflicting_resource} if conflicting_resource else None,
        )


# Business logic exceptions

class CapacityExceededError(ConflictError):
    title = "Capacity Exceeded"
    code = "CAPACITY_EXCEEDED"
    slug = "capacity-exceeded"
    retryable = False

    def __init__(self, departure_id: str, requested_seats: int, available_seats: int):
        super().__init__(
            detail=(
                f"Departure {departure_id} has insufficient capacity. "
                f"Requested: {requested_seats}, Available: {available_seats}"
            ),
            conflicting_resource={
                "departure_id": departure_id,
                "requested_seats": requested_seats,
                "available_seats": available_seats,
            },
        )


class GroupAlreadyBookedError(ConflictError):
    title = "Group Already Booked"
    code = "GROUP_ALREADY_BOOKED"
    slug = "group-already-booked"
    retryable = False

    def __init__(self, group_id: str):
        super().__init__(
            detail=f"Departure group {group_id} is already booked",
            conflicting_resource={"group_id": group_id},
        )


class InvalidTransitionError(ConflictError):
    """The status change is not an edge of the workflow graph."""

    title = "Invalid Status Transition"
    code = "INVALID_TRANSITION"
    slug = "invalid-transition"

    def __init__(self, resource_type: str, resource_id: str, current: str, target: str):
        super().__init__(
            detail=f"Cannot move {resource_type} {resource_id} from {current} to {target}",
            conflicting_resource={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "current_status": current,
                "target_status": target,
            },
        )
        self.current = current
        self.target = target


class NotPendingError(ConflictError):
    """Payment was requested for a booking that is no longer PENDING."""

    title = "Booking Not Pending"
    code = "NOT_PENDING"
    slug = "not-pending"

    def __init__(self, booking_id: str, status: str):
        super().__init__(
            detail=f"Booking {booking_id} is not pending payment (status: {status})",
            conflicting_resource={"booking_id": booking_id, "status": status},
        )
        self.problem_details["current_status"] = status


class InvalidSignatureError(ProblemDetailsException):
    status = 403
    title = "Invalid Signature"
    code = "INVALID_SIGNATURE"
    slug = "invalid-signature"

    def __init__(self, detail: str = "Payment notification signature is invalid"):
        super().__init__(detail)


class UpstreamUnavailableError(ProblemDetailsException):
    """The payment provider failed, timed out or answered with garbage."""

    status = 502
    title = "Upstream Unavailable"
    code = "UPSTREAM_UNAVAILABLE"
    slug = "upstream-unavailable"
    retryable = True

    def __init__(self, detail: str = "Payment provider is unavailable", provider: Optional[str] = None):
        super().__init__(detail, extensions={"provider": provider} if provider else None)


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures as Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_TYPE_BASE}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "The request data failed validation",
            "code": "VALIDATION_ERROR",
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Exception handler that converts unhandled exceptions to Problem Details format.

    The response carries an ``error_id`` to correlate with server logs.
    """
    problem_details = {
        "type": f"{PROBLEM_TYPE_BASE}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": str(uuid.uuid4()),
        "timestamp": utcnow().isoformat() + "Z",
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
