"""Background scheduler for hourly channel statistics collection.

Uses APScheduler to run a sweep at the top of every hour plus one sweep
right after startup. A sweep processes every tracked channel sequentially,
pausing between channels so platform APIs are not hit in bursts. Only one
sweep runs at a time; a tick or manual trigger that arrives while a sweep
is in flight is skipped rather than queued.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from models.channel import Platform
from services.channel_processor import ChannelProcessor
from services.channel_store import ChannelStore, SqlChannelStore
from services.platform_resolver import build_resolvers
from services.retry import RetryPolicy

logger = logging.getLogger(__name__)

HOURLY_JOB_ID = "hourly_stats_collection"
STARTUP_JOB_ID = "startup_stats_collection"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def quota_cooldown_expired(now: datetime, tripped_at: datetime, cooldown: timedelta) -> bool:
    """Whether a platform whose quota ran out at `tripped_at` may be called again."""
    return now - tripped_at >= cooldown


@dataclass
class SweepSummary:
    """Outcome of one collection sweep."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    total: int = 0
    collected: int = 0
    failed: int = 0
    skipped: int = 0
    error: Optional[str] = None


@dataclass
class CollectionState:
    """Mutable state owned by one CollectionScheduler."""

    running: bool = False
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_summary: Optional[SweepSummary] = None
    quota_tripped_at: dict[Platform, datetime] = field(default_factory=dict)


class CollectionScheduler:
    """Drive hourly collection sweeps over all tracked channels."""

    def __init__(
        self,
        store: Optional[ChannelStore] = None,
        processor: Optional[ChannelProcessor] = None,
        channel_delay: Optional[float] = None,
        quota_cooldown: Optional[timedelta] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        settings = get_settings()

        self.store = store or SqlChannelStore()
        self.processor = processor or ChannelProcessor(
            self.store,
            build_resolvers(self.store),
            RetryPolicy.from_settings(settings),
            record_failures=settings.collection_record_failures,
        )
        if self.processor.on_quota_exceeded is None:
            self.processor.on_quota_exceeded = self.mark_quota_exceeded

        self.channel_delay = (
            settings.collection_channel_delay_seconds if channel_delay is None else channel_delay
        )
        self.quota_cooldown = quota_cooldown or timedelta(minutes=settings.quota_cooldown_minutes)
        self.sleep = sleep
        self.clock = clock

        self.state = CollectionState()
        self.scheduler = AsyncIOScheduler()
        self._background: set[asyncio.Task] = set()

    # ---- trigger interface ----

    def start(self, run_immediately: bool = True) -> None:
        """Start the hourly cadence, plus one sweep right away."""
        if self.scheduler.running:
            logger.info("Collection scheduler already running")
            return

        self.scheduler.add_job(
            self.run_sweep,
            trigger=CronTrigger(minute=0),
            id=HOURLY_JOB_ID,
            name="Collect channel stats hourly",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        if run_immediately:
            # No trigger means run once, as soon as the scheduler starts
            self.scheduler.add_job(
                self.run_sweep,
                id=STARTUP_JOB_ID,
                name="Initial channel stats collection",
                replace_existing=True,
            )

        self.scheduler.start()
        logger.info("Collection scheduler started - will collect stats hourly")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Collection scheduler stopped")

    def trigger_now(self) -> bool:
        """Start a sweep in the background. Returns False if one is already running."""
        if not self._begin():
            logger.info("Manual collection requested while a sweep is running, ignoring")
            return False

        task = asyncio.create_task(self._sweep())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def wait_for_background(self) -> None:
        """Wait for sweeps started by trigger_now to finish."""
        if self._background:
            await asyncio.gather(*self._background)

    def status(self) -> dict:
        summary = self.state.last_summary
        job = self.scheduler.get_job(HOURLY_JOB_ID) if self.scheduler.running else None
        return {
            "running": self.state.running,
            "last_started_at": self.state.last_started_at,
            "last_finished_at": self.state.last_finished_at,
            "next_run_at": job.next_run_time if job else None,
            "last_summary": summary.__dict__ if summary else None,
            "quota_cooldowns": {
                platform.value: tripped_at
                for platform, tripped_at in self.state.quota_tripped_at.items()
            },
        }

    # ---- sweep ----

    async def run_sweep(self) -> Optional[SweepSummary]:
        """Run one sweep now. Returns None if a sweep was already running."""
        if not self._begin():
            logger.warning("Previous stats collection still running, skipping this run")
            return None
        return await self._sweep()

    def _begin(self) -> bool:
        # Check-and-set without an await in between, so it is atomic on the loop
        if self.state.running:
            return False
        self.state.running = True
        return True

    async def _sweep(self) -> SweepSummary:
        summary = SweepSummary(started_at=self.clock())
        self.state.last_started_at = summary.started_at
        logger.info("Stats collection started...")

        try:
            try:
                channels = await self.store.list_channels()
            except Exception as e:
                logger.error(f"Error in stats collection, could not list channels: {e}")
                summary.error = str(e)
                return summary

            summary.total = len(channels)
            processed_any = False

            for channel in channels:
                platform = Platform(channel.platform)
                if self.in_quota_cooldown(platform):
                    logger.info(f"Skipping {channel.display_name}: {platform.value} quota cooldown active")
                    summary.skipped += 1
                    continue

                if processed_any and self.channel_delay > 0:
                    await self.sleep(self.channel_delay)
                processed_any = True

                if await self.processor.process(channel):
                    summary.collected += 1
                else:
                    summary.failed += 1

            return summary
        finally:
            summary.finished_at = self.clock()
            self.state.last_summary = summary
            self.state.last_finished_at = summary.finished_at
            self.state.running = False
            logger.info(
                f"Stats collection finished: {summary.collected}/{summary.total} collected, "
                f"{summary.failed} failed, {summary.skipped} skipped"
            )

    # ---- quota cooldown ----

    def mark_quota_exceeded(self, platform: Platform) -> None:
        self.state.quota_tripped_at[platform] = self.clock()
        logger.warning(
            f"{platform.value} quota exhausted, pausing {platform.value} collection "
            f"for {self.quota_cooldown}"
        )

    def in_quota_cooldown(self, platform: Platform) -> bool:
        tripped_at = self.state.quota_tripped_at.get(platform)
        if tripped_at is None:
            return False
        if quota_cooldown_expired(self.clock(), tripped_at, self.quota_cooldown):
            del self.state.quota_tripped_at[platform]
            return False
        return True


# Global scheduler instance, created on application startup
collection_scheduler: Optional[CollectionScheduler] = None


def get_collection_scheduler() -> CollectionScheduler:
    global collection_scheduler
    if collection_scheduler is None:
        collection_scheduler = CollectionScheduler()
    return collection_scheduler


def start_scheduler() -> None:
    """Start the background scheduler with the hourly collection job."""
    settings = get_settings()
    if not settings.collection_enabled:
        logger.info("Stats collection disabled, scheduler not started")
        return
    get_collection_scheduler().start(run_immediately=settings.collection_run_on_startup)


def stop_scheduler() -> None:
    """Stop the background scheduler."""
    if collection_scheduler is not None:
        collection_scheduler.stop()
