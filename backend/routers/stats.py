"""Stats router - time-windowed statistics history for one channel."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.channel import TrackedChannel
from models.stats_snapshot import StatsSnapshot

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/stats", tags=["stats"])

PERIODS: dict[str, Optional[timedelta]] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}
DEFAULT_PERIOD = "7d"


class SnapshotResponse(BaseModel):
    id: int
    channel_id: int
    subscribers: int
    total_views: int
    videos: int
    likes: int
    recorded_at: datetime


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of the window for `period`. Unknown periods fall back to 7 days."""
    window = PERIODS.get(period, PERIODS[DEFAULT_PERIOD])
    if window is None:
        return None
    return (now or datetime.now(timezone.utc)) - window


@router.get("/{channel_id}", response_model=list[SnapshotResponse])
async def get_channel_stats(
    channel_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    period: str = DEFAULT_PERIOD,
):
    """Get snapshots for a channel within `period` (24h, 7d, 30d or all), oldest first."""
    channel = await db.get(TrackedChannel, channel_id)
    if channel is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")

    query = select(StatsSnapshot).where(StatsSnapshot.channel_id == channel_id)
    start = period_start(period)
    if start is not None:
        query = query.where(StatsSnapshot.recorded_at >= start)
    query = query.order_by(StatsSnapshot.recorded_at.asc(), StatsSnapshot.id.asc())

    result = await db.execute(query)
    return [
        SnapshotResponse(
            id=s.id,
            channel_id=s.channel_id,
            subscribers=s.subscribers,
            total_views=s.total_views,
            videos=s.videos,
            likes=s.likes,
            recorded_at=s.recorded_at,
        )
        for s in result.scalars()
    ]
