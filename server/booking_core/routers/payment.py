"""Payment router: checkout creation, provider notifications and status polling."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.actors import Actor
from ..core.database import get_db
from ..core.dependencies import CurrentActor, get_payment_provider
from ..core.exceptions import ProblemDetailsException, ValidationError
from ..schemas.payment import (
    CreatePaymentRequest,
    PaymentStatus,
    PaymentStatusRequest,
    PaymentTransaction,
    WebhookAck,
)
from ..services.payment_gateway import PaymentGateway
from ..services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payment", tags=["payment"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
PROVIDER_DEPENDENCY = Depends(get_payment_provider)


@router.post("/create", response_model=PaymentTransaction)
async def create_payment(
    request: CreatePaymentRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY,
    provider: PaymentProvider = PROVIDER_DEPENDENCY
) -> JSONResponse:
    """
    Start payment for a PENDING booking.

    Calling this again while the booking is still pending hands back the
    checkout already started instead of opening a second one.
    """
    gateway = PaymentGateway(db, provider)

    try:
        session = await gateway.create_transaction(request.booking_id, actor)
        response_data = PaymentTransaction(
            booking_id=str(session.booking_id),
            order_id=session.order_id,
            token=session.token,
            redirect_url=session.redirect_url
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in payment creation",
            extra={
                "booking_id": str(request.booking_id),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    db: AsyncSession = DB_DEPENDENCY,
    provider: PaymentProvider = PROVIDER_DEPENDENCY
) -> JSONResponse:
    """
    Receive a payment notification from the provider.

    Not authenticated with a bearer token; the notification signature is
    verified instead. Duplicate, late and stale notifications are
    acknowledged with 200 so the provider stops retrying them.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationError(detail="Notification body is not valid JSON") from e

    if not isinstance(payload, dict):
        raise ValidationError(detail="Notification body must be a JSON object")

    gateway = PaymentGateway(db, provider)

    try:
        outcome = await gateway.handle_webhook(payload)

        return JSONResponse(
            status_code=200,
            content=WebhookAck(outcome=outcome).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in payment notification",
            extra={
                "order_id": payload.get("order_id"),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/status", response_model=PaymentStatus)
async def payment_status(
    request: PaymentStatusRequest,
    actor: Actor = CurrentActor,
    db: AsyncSession = DB_DEPENDENCY,
    provider: PaymentProvider = PROVIDER_DEPENDENCY
) -> JSONResponse:
    """
    Reconcile a booking with the provider's view of its payment.

    Useful when a notification was lost. A provider outage is reported as
    an unchanged booking rather than an error.
    """
    gateway = PaymentGateway(db, provider)

    try:
        result = await gateway.poll_status(request.booking_id, actor)
        response_data = PaymentStatus(
            booking_id=str(result.booking.id),
            status=result.booking.status,
            changed=result.changed,
            provider_checked=result.provider_checked
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in payment status poll",
            extra={
                "booking_id": str(request.booking_id),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
