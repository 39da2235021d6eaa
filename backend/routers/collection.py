"""Collection router - inspect the scheduler and trigger a sweep manually."""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from services.scheduler import CollectionScheduler, get_collection_scheduler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/collection", tags=["collection"])


class SweepSummaryResponse(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime]
    total: int
    collected: int
    failed: int
    skipped: int
    error: Optional[str]


class CollectionStatusResponse(BaseModel):
    running: bool
    last_started_at: Optional[datetime]
    last_finished_at: Optional[datetime]
    next_run_at: Optional[datetime]
    last_summary: Optional[SweepSummaryResponse]
    quota_cooldowns: dict[str, datetime]


class TriggerResponse(BaseModel):
    message: str


@router.get("/status", response_model=CollectionStatusResponse)
async def get_collection_status(
    scheduler: Annotated[CollectionScheduler, Depends(get_collection_scheduler)],
):
    """Current scheduler state and the outcome of the last sweep."""
    return CollectionStatusResponse(**scheduler.status())


@router.post("/run", response_model=TriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def run_collection(
    scheduler: Annotated[CollectionScheduler, Depends(get_collection_scheduler)],
):
    """Start a sweep now, in the background. 409 if one is already running."""
    if not scheduler.trigger_now():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A stats collection is already running",
        )
    logger.info("Manual stats collection started")
    return TriggerResponse(message="Stats collection started")
