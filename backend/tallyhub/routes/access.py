"""
TallyHub Backend — Access Counter Route Handlers
==================================================

What:  /api/access: increment, read, statistics, integrity check, reset.
How:   Thin handlers; CounterService does the work, the envelope helpers
       shape the response.

Reset and runtime mode:
    The production check reads `request.app.state.settings` on every call,
    so the decision always reflects the serving application's current mode.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tallyhub.database import get_db_session
from tallyhub.schemas.access import IntegrityResponse
from tallyhub.schemas.envelope import error_response, success_response
from tallyhub.services.counter_service import counter_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/access", tags=["Access Counter"])


@router.post("/increment", summary="Atomically increment the access counter")
async def increment_access(request: Request, db: AsyncSession = Depends(get_db_session)) -> JSONResponse:
    result = await counter_service.increment(db)
    logger.info(
        "Access incremented to %d (ip=%s)",
        result.count,
        request.client.host if request.client else "unknown",
    )
    return success_response(result, "Access incremented successfully")


@router.get("/count", summary="Current counter value (0 if never incremented)")
async def get_count(db: AsyncSession = Depends(get_db_session)) -> JSONResponse:
    result = await counter_service.current_count(db)
    return success_response(result, "Counter retrieved successfully")


@router.get("/statistics", summary="Counter value with average accesses per day")
async def get_statistics(db: AsyncSession = Depends(get_db_session)) -> JSONResponse:
    result = await counter_service.statistics(db)
    return success_response(result, "Statistics retrieved successfully")


@router.get(
    "/health",
    summary="Counter integrity check",
    description="200 when at most one counter row exists and it is non-negative, 500 otherwise.",
)
async def counter_health(db: AsyncSession = Depends(get_db_session)) -> JSONResponse:
    if await counter_service.validate_integrity(db):
        return success_response(IntegrityResponse(), "Counter is consistent")
    return error_response("Counter in inconsistent state", status_code=500)


@router.post(
    "/reset",
    summary="Reset the counter to zero",
    description="Refused with 403 when the service runs in production mode.",
)
async def reset_counter(request: Request, db: AsyncSession = Depends(get_db_session)) -> JSONResponse:
    environment = request.app.state.settings.environment
    result = await counter_service.reset(db, environment=environment)
    return success_response(result, "Counter reset successfully")
