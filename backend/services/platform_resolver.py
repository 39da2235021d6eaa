"""Platform info resolvers - turn a channel handle into current statistics.

Each resolver looks up the platform's internal id for a handle (searching
only when no id has been cached yet), then fetches current statistics for
that id. Resolvers always raise on failure; they never return placeholder
zero stats.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import httpx

from config import get_settings
from models.channel import Platform
from services import tiktok_service, youtube_service
from services.errors import NotConfiguredError, NotFoundError

if TYPE_CHECKING:
    from services.channel_store import ChannelStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelStats:
    """Current counts for one channel. Metrics a platform lacks stay 0."""

    name: Optional[str]
    subscribers: int = 0
    views: int = 0
    videos: int = 0
    likes: int = 0


class PlatformResolver:
    """Resolve a handle to its internal id and fetch its statistics."""

    platform: Platform

    def __init__(
        self,
        store: "ChannelStore",
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.api_key = api_key
        self.client = client

    async def search(self, handle: str) -> Optional[str]:
        raise NotImplementedError

    async def get_stats(self, internal_id: str) -> ChannelStats:
        raise NotImplementedError

    async def resolve_internal_id(self, handle: str) -> str:
        """Return the cached internal id for `handle`, searching only on a miss."""
        cached = await self.store.get_cached_internal_id(self.platform, handle)
        if cached:
            return cached

        internal_id = await self.search(handle)
        if not internal_id:
            raise NotFoundError(self.platform.value, f"no match for handle {handle!r}")

        logger.info(f"Resolved {self.platform.value} handle {handle} -> {internal_id}")

        try:
            await self.store.set_cached_internal_id(self.platform, handle, internal_id)
        except Exception as e:
            logger.warning(
                f"Failed to cache {self.platform.value} id for {handle}, continuing: {e}"
            )

        return internal_id

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise NotConfiguredError(self.platform.value, "API key not configured")

    async def resolve_and_fetch(self, handle: str) -> ChannelStats:
        self.ensure_configured()
        internal_id = await self.resolve_internal_id(handle)
        return await self.get_stats(internal_id)


class YouTubeResolver(PlatformResolver):
    platform = Platform.YOUTUBE

    async def search(self, handle: str) -> Optional[str]:
        # Handles entered as /channel/UC... URLs are already channel ids
        if youtube_service.looks_like_channel_id(handle):
            return handle
        return await youtube_service.search_channel_id(self.api_key, handle, client=self.client)

    async def get_stats(self, internal_id: str) -> ChannelStats:
        stats = await youtube_service.fetch_channel_stats(
            self.api_key, internal_id, client=self.client
        )
        return ChannelStats(
            name=stats["channel_title"],
            subscribers=stats["subscriber_count"],
            views=stats["view_count"],
            videos=stats["video_count"],
        )


class TikTokResolver(PlatformResolver):
    platform = Platform.TIKTOK

    async def search(self, handle: str) -> Optional[str]:
        return await tiktok_service.search_user_id(self.api_key, handle, client=self.client)

    async def get_stats(self, internal_id: str) -> ChannelStats:
        stats = await tiktok_service.fetch_profile_stats(
            self.api_key, internal_id, client=self.client
        )
        return ChannelStats(
            name=stats["nickname"],
            subscribers=stats["follower_count"],
            likes=stats["total_favorited"],
        )


def build_resolvers(
    store: "ChannelStore",
    client: Optional[httpx.AsyncClient] = None,
) -> dict[Platform, PlatformResolver]:
    """Create one resolver per platform using configured API keys."""
    settings = get_settings()
    return {
        Platform.YOUTUBE: YouTubeResolver(store, settings.youtube_api_key, client=client),
        Platform.TIKTOK: TikTokResolver(store, settings.tokinsight_api_key, client=client),
    }
