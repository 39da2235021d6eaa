"""Channels router - add, list and remove tracked channels.

Adding a channel resolves it on its platform right away so typos are
rejected up front and the channel starts with one snapshot.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.rate_limit import ADD_CHANNEL_LIMIT, limiter
from models.channel import Platform, TrackedChannel
from models.stats_snapshot import StatsSnapshot
from services.channel_store import SqlChannelStore
from services.channel_urls import InvalidChannelUrl, extract_handle
from services.errors import ApiError, NotConfiguredError, NotFoundError, QuotaExceededError
from services.platform_resolver import PlatformResolver, build_resolvers
from services.retry import RetryPolicy, execute_with_retry
from services.stats_validator import is_valid_stats

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/channels", tags=["channels"])

DUPLICATE_DETAIL = "Failed to add channel. The channel is already being monitored"


# Request/response schemas
class AddChannelRequest(BaseModel):
    platform: Platform
    url: str


class AddChannelResponse(BaseModel):
    success: bool
    channel_id: int
    name: str | None
    message: str


class ChannelResponse(BaseModel):
    id: int
    name: str | None
    platform: Platform
    handle: str
    channel_url: str | None
    subscribers: int | None
    views: int | None
    videos: int | None
    likes: int | None
    timestamp: datetime | None


class DeleteResponse(BaseModel):
    success: bool


# Dependencies
def get_resolvers() -> dict[Platform, PlatformResolver]:
    return build_resolvers(SqlChannelStore())


def get_retry_policy() -> RetryPolicy:
    return RetryPolicy.from_settings()


def api_error_to_http(e: ApiError) -> HTTPException:
    """Map a platform error onto the HTTP status shown to the dashboard."""
    if isinstance(e, NotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Channel not found on {e.platform}",
        )
    if isinstance(e, QuotaExceededError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"{e.platform} API quota exceeded. Try again later.",
        )
    if isinstance(e, NotConfiguredError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to add channel: {e.message}",
    )


@router.get("", response_model=list[ChannelResponse])
async def list_channels(
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List all tracked channels with their latest snapshot."""
    latest = (
        select(
            StatsSnapshot.channel_id,
            func.max(StatsSnapshot.id).label("snapshot_id"),
        )
        .group_by(StatsSnapshot.channel_id)
        .subquery()
    )
    query = (
        select(TrackedChannel, StatsSnapshot)
        .outerjoin(latest, latest.c.channel_id == TrackedChannel.id)
        .outerjoin(StatsSnapshot, StatsSnapshot.id == latest.c.snapshot_id)
        .order_by(TrackedChannel.id)
    )
    result = await db.execute(query)

    return [
        ChannelResponse(
            id=channel.id,
            name=channel.name,
            platform=channel.platform,
            handle=channel.handle,
            channel_url=channel.channel_url,
            subscribers=snapshot.subscribers if snapshot else None,
            views=snapshot.total_views if snapshot else None,
            videos=snapshot.videos if snapshot else None,
            likes=snapshot.likes if snapshot else None,
            timestamp=snapshot.recorded_at if snapshot else None,
        )
        for channel, snapshot in result.all()
    ]


@router.post("", response_model=AddChannelResponse)
@limiter.limit(ADD_CHANNEL_LIMIT)
async def add_channel(
    request: Request,  # slowapi reads the client address from here
    body: AddChannelRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    resolvers: Annotated[dict[Platform, PlatformResolver], Depends(get_resolvers)],
    policy: Annotated[RetryPolicy, Depends(get_retry_policy)],
):
    """Start tracking a channel.

    Duplicates are rejected before any platform API is called.
    """
    try:
        handle = extract_handle(body.url, body.platform)
    except InvalidChannelUrl as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    result = await db.execute(
        select(TrackedChannel).where(
            TrackedChannel.platform == body.platform,
            TrackedChannel.handle == handle,
        )
    )
    if result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL)

    resolver = resolvers[body.platform]
    label = f"{body.platform.value} lookup for {handle}"
    try:
        resolver.ensure_configured()
        internal_id = await execute_with_retry(
            lambda: resolver.resolve_internal_id(handle), label, policy
        )
        stats = await execute_with_retry(
            lambda: resolver.get_stats(internal_id), label, policy
        )
    except ApiError as e:
        logger.warning(f"Could not add {body.platform.value} channel {handle}: {e}")
        raise api_error_to_http(e)

    channel = TrackedChannel(
        platform=body.platform,
        handle=handle,
        channel_url=body.url.strip(),
        internal_id=internal_id,
        name=stats.name or handle,
    )
    db.add(channel)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent add of the same channel
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL)

    if is_valid_stats(stats, body.platform):
        db.add(
            StatsSnapshot(
                channel_id=channel.id,
                subscribers=stats.subscribers,
                total_views=stats.views,
                videos=stats.videos,
                likes=stats.likes,
                recorded_at=datetime.now(timezone.utc),
            )
        )
    else:
        logger.warning(f"Initial stats for {handle} are empty, not recording a snapshot")

    await db.commit()
    logger.info(f"Added {body.platform.value} channel {channel.name} (id={channel.id})")

    return AddChannelResponse(
        success=True,
        channel_id=channel.id,
        name=channel.name,
        message="Channel added successfully",
    )


@router.delete("/{channel_id}", response_model=DeleteResponse)
async def delete_channel(
    channel_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Stop tracking a channel and delete its statistics history."""
    channel = await db.get(TrackedChannel, channel_id)
    if channel is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")

    await db.execute(delete(StatsSnapshot).where(StatsSnapshot.channel_id == channel_id))
    await db.execute(delete(TrackedChannel).where(TrackedChannel.id == channel_id))
    await db.commit()

    logger.info(f"Deleted channel {channel_id}")
    return DeleteResponse(success=True)
