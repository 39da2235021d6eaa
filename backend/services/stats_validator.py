"""Decide whether fetched statistics are trustworthy enough to persist."""

from models.channel import Platform
from services.platform_resolver import ChannelStats


def is_valid_stats(stats: ChannelStats, platform: Platform | str) -> bool:
    """Reject all-zero payloads so outages don't show up as drops to zero.

    YouTube needs a non-zero subscriber, view or video count. TikTok
    exposes no views or videos, so it needs subscribers or likes.
    """
    platform = Platform(platform)
    if platform == Platform.YOUTUBE:
        return stats.subscribers > 0 or stats.views > 0 or stats.videos > 0
    if platform == Platform.TIKTOK:
        return stats.subscribers > 0 or stats.likes > 0
    return False
