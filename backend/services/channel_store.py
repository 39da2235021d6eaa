"""Persistence operations used by the collection pipeline.

`ChannelStore` is the interface the resolvers, processor and scheduler
depend on. `SqlChannelStore` implements it over SQLAlchemy async sessions,
opening a short-lived session per call so a sweep never holds a
transaction open across slow API requests.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.channel import Platform, TrackedChannel
from models.stats_snapshot import StatsSnapshot
from services.platform_resolver import ChannelStats

logger = logging.getLogger(__name__)


class ChannelStore(Protocol):
    async def list_channels(self) -> list[TrackedChannel]: ...

    async def get_cached_internal_id(self, platform: Platform, handle: str) -> Optional[str]: ...

    async def set_cached_internal_id(self, platform: Platform, handle: str, internal_id: str) -> None: ...

    async def insert_snapshot(
        self, channel_id: int, stats: ChannelStats, recorded_at: Optional[datetime] = None
    ) -> None: ...

    async def update_display_name(self, channel_id: int, name: str) -> None: ...


class SqlChannelStore:
    """ChannelStore backed by the relational database."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_factory is None:
            from database import async_session
            session_factory = async_session
        self.session_factory = session_factory

    async def list_channels(self) -> list[TrackedChannel]:
        async with self.session_factory() as db:
            result = await db.execute(select(TrackedChannel).order_by(TrackedChannel.id))
            return list(result.scalars().all())

    async def get_cached_internal_id(self, platform: Platform, handle: str) -> Optional[str]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(TrackedChannel.internal_id).where(
                    TrackedChannel.platform == platform,
                    TrackedChannel.handle == handle,
                    TrackedChannel.internal_id.is_not(None),
                )
            )
            return result.scalars().first()

    async def set_cached_internal_id(self, platform: Platform, handle: str, internal_id: str) -> None:
        """Record the resolved id. An id that is already set is never overwritten."""
        async with self.session_factory() as db:
            await db.execute(
                update(TrackedChannel)
                .where(
                    TrackedChannel.platform == platform,
                    TrackedChannel.handle == handle,
                    TrackedChannel.internal_id.is_(None),
                )
                .values(internal_id=internal_id)
            )
            await db.commit()

    async def insert_snapshot(
        self,
        channel_id: int,
        stats: ChannelStats,
        recorded_at: Optional[datetime] = None,
    ) -> None:
        async with self.session_factory() as db:
            db.add(
                StatsSnapshot(
                    channel_id=channel_id,
                    subscribers=stats.subscribers,
                    total_views=stats.views,
                    videos=stats.videos,
                    likes=stats.likes,
                    recorded_at=recorded_at or datetime.now(timezone.utc),
                )
            )
            await db.commit()

    async def update_display_name(self, channel_id: int, name: str) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(TrackedChannel)
                .where(TrackedChannel.id == channel_id)
                .values(name=name)
            )
            await db.commit()
