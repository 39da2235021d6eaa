"""Unit tests for the per-channel processor."""

import pytest

from models.channel import Platform
from services.channel_processor import ChannelProcessor
from services.errors import NotFoundError, QuotaExceededError, TransientApiError
from services.platform_resolver import ChannelStats, YouTubeResolver
from services.retry import RetryPolicy
from tests.fakes import FakeResolver, FakeStore, make_channel

POLICY = RetryPolicy(max_retries=2, base_delay=1.0, max_delay=30.0, backoff_multiplier=2.0)


def make_processor(store, youtube=None, tiktok=None, **kwargs):
    resolvers = {
        Platform.YOUTUBE: youtube or FakeResolver(Platform.YOUTUBE),
        Platform.TIKTOK: tiktok or FakeResolver(Platform.TIKTOK),
    }
    return ChannelProcessor(store, resolvers, POLICY, **kwargs)


@pytest.mark.asyncio
async def test_valid_stats_are_persisted(no_sleep):
    store = FakeStore()
    stats = ChannelStats(name="Example", subscribers=1000, views=50000, videos=10)
    youtube = FakeResolver(Platform.YOUTUBE, {"example": stats})
    channel = make_channel(1, handle="example", name="Example")

    written = await make_processor(store, youtube=youtube, sleep=no_sleep).process(channel)

    assert written is True
    assert len(store.snapshots) == 1
    channel_id, saved, recorded_at = store.snapshots[0]
    assert channel_id == 1
    assert saved == stats
    assert recorded_at is not None
    assert youtube.calls == ["example"]


@pytest.mark.asyncio
async def test_display_name_is_refreshed(no_sleep):
    store = FakeStore()
    youtube = FakeResolver(Platform.YOUTUBE, {"example": ChannelStats(name="New Name", subscribers=5)})

    await make_processor(store, youtube=youtube, sleep=no_sleep).process(
        make_channel(1, handle="example", name="Old Name")
    )

    assert store.names == {1: "New Name"}


@pytest.mark.asyncio
async def test_zero_stats_are_skipped(no_sleep):
    store = FakeStore()
    tiktok = FakeResolver(Platform.TIKTOK, {"quiet": ChannelStats(name="Quiet")})

    written = await make_processor(store, tiktok=tiktok, sleep=no_sleep).process(
        make_channel(2, platform=Platform.TIKTOK, handle="quiet")
    )

    assert written is False
    assert store.snapshots == []


@pytest.mark.asyncio
async def test_transient_failures_are_retried_then_succeed(no_sleep):
    store = FakeStore()
    youtube = FakeResolver(
        Platform.YOUTUBE,
        {"flaky": [TransientApiError("youtube", "reset"), ChannelStats(name="Flaky", subscribers=3)]},
    )

    written = await make_processor(store, youtube=youtube, sleep=no_sleep).process(
        make_channel(3, handle="flaky")
    )

    assert written is True
    assert youtube.calls == ["flaky", "flaky"]
    assert no_sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_exhausted_retries_are_contained(no_sleep):
    store = FakeStore()
    youtube = FakeResolver(Platform.YOUTUBE, {"down": TransientApiError("youtube", "503", status_code=503)})

    written = await make_processor(store, youtube=youtube, sleep=no_sleep).process(
        make_channel(4, handle="down")
    )

    assert written is False
    assert store.snapshots == []
    assert len(youtube.calls) == POLICY.max_retries + 1


@pytest.mark.asyncio
async def test_not_found_is_not_retried(no_sleep):
    store = FakeStore()
    youtube = FakeResolver(Platform.YOUTUBE, {"ghost": NotFoundError("youtube", "ghost")})

    await make_processor(store, youtube=youtube, sleep=no_sleep).process(make_channel(5, handle="ghost"))

    assert youtube.calls == ["ghost"]
    assert no_sleep.delays == []


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained(no_sleep):
    store = FakeStore()
    youtube = FakeResolver(Platform.YOUTUBE, {"weird": KeyError("items")})

    assert await make_processor(store, youtube=youtube, sleep=no_sleep).process(
        make_channel(6, handle="weird")
    ) is False


@pytest.mark.asyncio
async def test_quota_error_notifies_callback(no_sleep):
    tripped = []
    youtube = FakeResolver(Platform.YOUTUBE, {"x": QuotaExceededError("youtube", "daily", status_code=403)})

    await make_processor(
        FakeStore(), youtube=youtube, sleep=no_sleep, on_quota_exceeded=tripped.append
    ).process(make_channel(7, handle="x"))

    assert tripped == [Platform.YOUTUBE]


@pytest.mark.asyncio
async def test_record_failures_writes_zero_snapshot(no_sleep):
    store = FakeStore()
    youtube = FakeResolver(Platform.YOUTUBE, {"down": TransientApiError("youtube", "timeout")})

    written = await make_processor(
        store, youtube=youtube, sleep=no_sleep, record_failures=True
    ).process(make_channel(8, handle="down"))

    assert written is False
    assert len(store.snapshots) == 1
    _, stats, _ = store.snapshots[0]
    assert (stats.subscribers, stats.views, stats.videos, stats.likes) == (0, 0, 0, 0)


@pytest.mark.asyncio
async def test_store_failure_is_contained(no_sleep):
    store = FakeStore()

    async def broken_insert(*args, **kwargs):
        raise RuntimeError("disk full")

    store.insert_snapshot = broken_insert

    assert await make_processor(store, sleep=no_sleep).process(make_channel(9)) is False


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_retrying(no_sleep):
    store = FakeStore()
    processor = ChannelProcessor(
        store,
        {Platform.YOUTUBE: YouTubeResolver(store, ""), Platform.TIKTOK: FakeResolver(Platform.TIKTOK)},
        RetryPolicy(),
        sleep=no_sleep,
    )

    written = await processor.process(make_channel(10, handle="example"))

    assert written is False
    assert no_sleep.delays == []
    assert store.snapshots == []
