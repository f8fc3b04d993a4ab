"""Administrative operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.actors import Actor
from ..core.database import get_session_factory, to_naive_utc, utcnow
from ..core.dependencies import AdminActor
from ..schemas.admin import SweepExpiredRequest, SweepExpiredResponse
from ..services.expiry_sweeper import ExpirySweeper

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])

SESSION_FACTORY_DEPENDENCY = Depends(get_session_factory)


@router.post("/sweep-expired", response_model=SweepExpiredResponse)
async def sweep_expired(
    request: SweepExpiredRequest,
    actor: Actor = AdminActor,
    session_factory: async_sessionmaker[AsyncSession] = SESSION_FACTORY_DEPENDENCY
) -> JSONResponse:
    """
    Run the expiry sweep now instead of waiting for the background worker.

    ``now`` may be supplied to sweep as of another point in time.
    """
    now = to_naive_utc(request.now) if request.now else utcnow()
    expired_count = await ExpirySweeper(session_factory).sweep(now)

    logger.info(
        "Manual expiry sweep completed",
        extra={"expired_count": expired_count, "actor_id": actor.user_id}
    )

    response_data = SweepExpiredResponse(expired_count=expired_count, swept_at=now)
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
