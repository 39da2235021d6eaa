"""Endpoint tests for the channels, stats and collection routers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import func, select

from database import get_db
from main import app
from middleware.rate_limit import limiter
from models.channel import Platform, TrackedChannel
from models.stats_snapshot import StatsSnapshot
from routers.channels import get_resolvers, get_retry_policy
from services.errors import NotConfiguredError, NotFoundError, QuotaExceededError, TransientApiError
from services.platform_resolver import ChannelStats
from services.retry import RetryPolicy
from services.scheduler import get_collection_scheduler


class StubResolver:
    """Resolver double exposing the two-step lookup the add endpoint uses."""

    def __init__(self, platform, internal_id="UCexample", stats=None, error=None):
        self.platform = platform
        self.internal_id = internal_id
        self.stats = stats or ChannelStats(name="Example", subscribers=1000, views=50000, videos=10)
        self.error = error
        self.searched: list[str] = []
        self.fetched: list[str] = []

    def ensure_configured(self):
        pass

    async def resolve_internal_id(self, handle):
        self.searched.append(handle)
        if self.error:
            raise self.error
        return self.internal_id

    async def get_stats(self, internal_id):
        self.fetched.append(internal_id)
        return self.stats


class StubScheduler:
    def __init__(self, accept=True):
        self.accept = accept
        self.triggered = 0

    def trigger_now(self):
        self.triggered += 1
        return self.accept

    def status(self):
        return {
            "running": not self.accept,
            "last_started_at": None,
            "last_finished_at": None,
            "next_run_at": None,
            "last_summary": None,
            "quota_cooldowns": {},
        }


@pytest.fixture
def resolvers():
    return {
        Platform.YOUTUBE: StubResolver(Platform.YOUTUBE),
        Platform.TIKTOK: StubResolver(
            Platform.TIKTOK, internal_id="42", stats=ChannelStats(name="Dancer", subscribers=0, likes=5)
        ),
    }


@pytest_asyncio.fixture
async def client(session_factory, resolvers):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_resolvers] = lambda: resolvers
    app.dependency_overrides[get_retry_policy] = lambda: RetryPolicy(max_retries=0)
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    limiter.enabled = True


async def count(session_factory, model) -> int:
    async with session_factory() as db:
        return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_add_youtube_channel_resolves_and_records_snapshot(client, resolvers, session_factory):
    response = await client.post("/api/channels", json={"platform": "youtube", "url": "@example"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["name"] == "Example"
    assert resolvers[Platform.YOUTUBE].searched == ["example"]
    assert resolvers[Platform.YOUTUBE].fetched == ["UCexample"]

    async with session_factory() as db:
        channel = await db.get(TrackedChannel, payload["channel_id"])
        snapshot = (await db.execute(select(StatsSnapshot))).scalar_one()

    assert channel.handle == "example"
    assert channel.internal_id == "UCexample"
    assert (snapshot.subscribers, snapshot.total_views, snapshot.videos) == (1000, 50000, 10)


@pytest.mark.asyncio
async def test_add_tiktok_channel_from_url(client, resolvers):
    response = await client.post(
        "/api/channels", json={"platform": "tiktok", "url": "https://www.tiktok.com/@dancer"}
    )

    assert response.status_code == 200
    assert resolvers[Platform.TIKTOK].searched == ["dancer"]


@pytest.mark.asyncio
async def test_duplicate_channel_is_rejected_before_api_call(client, resolvers):
    await client.post("/api/channels", json={"platform": "youtube", "url": "@example"})

    response = await client.post(
        "/api/channels", json={"platform": "youtube", "url": "https://youtube.com/@example"}
    )

    assert response.status_code == 409
    assert resolvers[Platform.YOUTUBE].searched == ["example"]


@pytest.mark.asyncio
async def test_invalid_url_format_is_400(client, resolvers):
    response = await client.post(
        "/api/channels", json={"platform": "tiktok", "url": "https://youtube.com/@example"}
    )

    assert response.status_code == 400
    assert "tiktok.com/@username" in response.json()["detail"]
    assert resolvers[Platform.TIKTOK].searched == []


@pytest.mark.asyncio
async def test_unknown_platform_is_422(client):
    response = await client.post("/api/channels", json={"platform": "vimeo", "url": "@example"})
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected_status",
    [
        (NotFoundError("youtube", "no match"), 404),
        (QuotaExceededError("youtube", "daily", status_code=403), 429),
        (TransientApiError("youtube", "backend error", status_code=503), 502),
        (NotConfiguredError("youtube", "API key not configured"), 503),
    ],
)
async def test_platform_errors_map_to_http_status(client, resolvers, session_factory, error, expected_status):
    resolvers[Platform.YOUTUBE].error = error

    response = await client.post("/api/channels", json={"platform": "youtube", "url": "@example"})

    assert response.status_code == expected_status
    assert await count(session_factory, TrackedChannel) == 0


@pytest.mark.asyncio
async def test_empty_initial_stats_store_channel_without_snapshot(client, resolvers, session_factory):
    resolvers[Platform.YOUTUBE].stats = ChannelStats(name="Fresh")

    response = await client.post("/api/channels", json={"platform": "youtube", "url": "@fresh"})

    assert response.status_code == 200
    assert await count(session_factory, TrackedChannel) == 1
    assert await count(session_factory, StatsSnapshot) == 0


@pytest.mark.asyncio
async def test_list_channels_includes_latest_snapshot(client, session_factory):
    now = datetime.now(timezone.utc)
    async with session_factory() as db:
        tracked = TrackedChannel(platform=Platform.YOUTUBE, handle="a", name="A")
        untracked = TrackedChannel(platform=Platform.TIKTOK, handle="b", name="B")
        db.add_all([tracked, untracked])
        await db.flush()
        db.add_all([
            StatsSnapshot(channel_id=tracked.id, subscribers=10, total_views=100, recorded_at=now - timedelta(hours=1)),
            StatsSnapshot(channel_id=tracked.id, subscribers=11, total_views=120, recorded_at=now),
        ])
        await db.commit()

    response = await client.get("/api/channels")

    assert response.status_code == 200
    rows = response.json()
    assert [r["name"] for r in rows] == ["A", "B"]
    assert rows[0]["subscribers"] == 11
    assert rows[0]["views"] == 120
    assert rows[1]["subscribers"] is None
    assert rows[1]["timestamp"] is None


@pytest.mark.asyncio
async def test_delete_channel_removes_snapshots(client, session_factory):
    await client.post("/api/channels", json={"platform": "youtube", "url": "@example"})
    channel_id = (await client.get("/api/channels")).json()[0]["id"]

    response = await client.delete(f"/api/channels/{channel_id}")

    assert response.status_code == 200
    assert await count(session_factory, TrackedChannel) == 0
    assert await count(session_factory, StatsSnapshot) == 0
    assert (await client.delete(f"/api/channels/{channel_id}")).status_code == 404


@pytest.mark.asyncio
async def test_stats_are_filtered_by_period(client, session_factory):
    now = datetime.now(timezone.utc)
    async with session_factory() as db:
        channel = TrackedChannel(platform=Platform.YOUTUBE, handle="a", name="A")
        db.add(channel)
        await db.flush()
        for age, subs in [(timedelta(days=40), 1), (timedelta(days=10), 2), (timedelta(days=2), 3), (timedelta(hours=2), 4)]:
            db.add(StatsSnapshot(channel_id=channel.id, subscribers=subs, recorded_at=now - age))
        await db.commit()
        channel_id = channel.id

    async def subs(period):
        response = await client.get(f"/api/stats/{channel_id}", params={"period": period})
        assert response.status_code == 200
        return [row["subscribers"] for row in response.json()]

    assert await subs("24h") == [4]
    assert await subs("7d") == [3, 4]
    assert await subs("30d") == [2, 3, 4]
    assert await subs("all") == [1, 2, 3, 4]
    assert await subs("bogus") == [3, 4]


@pytest.mark.asyncio
async def test_stats_for_unknown_channel_is_404(client):
    assert (await client.get("/api/stats/999")).status_code == 404


@pytest.mark.asyncio
async def test_manual_collection_trigger(client):
    scheduler = StubScheduler(accept=True)
    app.dependency_overrides[get_collection_scheduler] = lambda: scheduler

    response = await client.post("/api/collection/run")

    assert response.status_code == 202
    assert scheduler.triggered == 1


@pytest.mark.asyncio
async def test_manual_collection_conflict_while_running(client):
    app.dependency_overrides[get_collection_scheduler] = lambda: StubScheduler(accept=False)

    response = await client.post("/api/collection/run")
    status_response = await client.get("/api/collection/status")

    assert response.status_code == 409
    assert status_response.json()["running"] is True


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_adding_channels_is_rate_limited_per_client(client):
    limiter.enabled = True
    limiter.reset()
    try:
        statuses = []
        for _ in range(20):
            response = await client.post("/api/channels", json={"platform": "youtube", "url": "@example"})
            statuses.append(response.status_code)
            if response.status_code == 429:
                break
    finally:
        limiter.reset()

    assert statuses[0] == 200
    assert statuses[-1] == 429
    assert set(statuses[1:-1]) <= {409}
    assert "Too many channels added" in response.json()["detail"]
