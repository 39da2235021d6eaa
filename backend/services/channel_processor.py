"""Collect statistics for a single tracked channel.

The processor is the failure boundary of a sweep: whatever goes wrong for
one channel is logged here and never reaches the scheduler, so the next
channel is always processed.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Mapping, Optional

from models.channel import Platform, TrackedChannel
from services.channel_store import ChannelStore
from services.errors import QuotaExceededError
from services.platform_resolver import ChannelStats, PlatformResolver
from services.retry import RetryPolicy, execute_with_retry
from services.stats_validator import is_valid_stats

logger = logging.getLogger(__name__)


class ChannelProcessor:
    """Resolve, retry, validate and persist stats for one channel at a time."""

    def __init__(
        self,
        store: ChannelStore,
        resolvers: Mapping[Platform, PlatformResolver],
        policy: RetryPolicy,
        on_quota_exceeded: Optional[Callable[[Platform], None]] = None,
        record_failures: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.resolvers = resolvers
        self.policy = policy
        self.on_quota_exceeded = on_quota_exceeded
        # Alternative policy: keep a zero row so gaps are visible on charts
        self.record_failures = record_failures
        self.sleep = sleep

    async def fetch_stats(self, channel: TrackedChannel) -> ChannelStats:
        """Fetch stats for `channel` through the retry executor. Raises on failure."""
        resolver = self.resolvers[Platform(channel.platform)]
        label = f"{resolver.platform.value} stats for {channel.display_name}"
        return await execute_with_retry(
            lambda: resolver.resolve_and_fetch(channel.handle),
            label,
            self.policy,
            sleep=self.sleep,
        )

    async def process(self, channel: TrackedChannel) -> bool:
        """Collect and store one snapshot. Returns True if a snapshot was written."""
        try:
            stats = await self.fetch_stats(channel)
        except QuotaExceededError as e:
            logger.error(f"Quota exhausted while collecting {channel.display_name}: {e}")
            if self.on_quota_exceeded:
                self.on_quota_exceeded(Platform(channel.platform))
            await self._record_failure(channel)
            return False
        except Exception as e:
            logger.error(f"Error collecting stats for channel {channel.id} ({channel.display_name}): {e}")
            await self._record_failure(channel)
            return False

        if not is_valid_stats(stats, channel.platform):
            logger.warning(
                f"Skipping empty stats for {channel.display_name}: "
                f"{stats.subscribers} subscribers, {stats.views} views, "
                f"{stats.videos} videos, {stats.likes} likes"
            )
            return False

        try:
            if stats.name and stats.name != channel.name:
                await self.store.update_display_name(channel.id, stats.name)
            await self.store.insert_snapshot(channel.id, stats, datetime.now(timezone.utc))
        except Exception as e:
            logger.error(f"Failed to store stats for {channel.display_name}: {e}")
            return False

        logger.info(
            f"Stats collected for {stats.name or channel.display_name}: "
            f"{stats.subscribers} subscribers"
        )
        return True

    async def _record_failure(self, channel: TrackedChannel) -> None:
        if not self.record_failures:
            return
        try:
            await self.store.insert_snapshot(
                channel.id, ChannelStats(name=channel.name), datetime.now(timezone.utc)
            )
        except Exception as e:
            logger.error(f"Failed to record failure snapshot for {channel.display_name}: {e}")
