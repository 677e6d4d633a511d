"""
Unauthenticated endpoints — access requests and liveness.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.v1.deps import get_db
from tracker.core.rate_limit import limiter
from tracker.models.access_request import AccessRequest
from tracker.schemas.admin import (AccessRequestCreate, AccessRequestRead,
                                   HealthResponse)

router = APIRouter(tags=["public"])
logger = logging.getLogger(__name__)


@router.post("/access-requests", response_model=AccessRequestRead, status_code=201)
@limiter.limit("5/minute")
async def request_access(
    request: Request,
    body: AccessRequestCreate,
    db: AsyncSession = Depends(get_db),
) -> AccessRequest:
    """Ask an admin to add an email to the allowlist."""
    access_request = AccessRequest(
        email=body.email,
        company=body.company,
        client_id=body.client_id.strip() if body.client_id else None,
        note=body.note,
    )
    db.add(access_request)
    await db.commit()
    await db.refresh(access_request)
    logger.info("Access request #%d from %s (%s)", access_request.id, body.email, body.company)
    return access_request


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check — DB connectivity."""
    result = HealthResponse(db=False)
    try:
        await db.execute(select(1))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
    return result
