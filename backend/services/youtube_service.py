"""YouTube Data API service.

Handles API key auth, handle-to-channel-id search and channel statistics.
Read-only access - only fetches public statistics.
"""

import logging
import re
from typing import Optional

import httpx

from config import get_settings
from services.errors import ApiError, NotFoundError, QuotaExceededError, TransientApiError

logger = logging.getLogger(__name__)
settings = get_settings()

PLATFORM = "youtube"

# Canonical channel ids are "UC" followed by 22 url-safe base64 characters
CHANNEL_ID_RE = re.compile(r"^UC[A-Za-z0-9_-]{22}$")

QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded", "keyInvalid", "forbidden"}


def looks_like_channel_id(value: str) -> bool:
    """Whether `value` is already a canonical YouTube channel id."""
    return bool(CHANNEL_ID_RE.match(value))


def _error_reason(response: httpx.Response) -> Optional[str]:
    """Extract the first error reason from a YouTube error body, if any."""
    try:
        errors = response.json().get("error", {}).get("errors", [])
    except ValueError:
        return None
    if errors:
        return errors[0].get("reason")
    return None


def _raise_for_status(response: httpx.Response) -> None:
    """Translate a non-200 YouTube response into the matching ApiError."""
    if response.status_code == 200:
        return

    text = response.text[:200]
    if response.status_code in (401, 403) or _error_reason(response) in QUOTA_REASONS:
        raise QuotaExceededError(PLATFORM, text, status_code=response.status_code)
    if response.status_code == 404:
        raise NotFoundError(PLATFORM, text, status_code=404)
    if response.status_code >= 500 or response.status_code == 429:
        raise TransientApiError(PLATFORM, text, status_code=response.status_code)
    raise ApiError(PLATFORM, text, status_code=response.status_code)


async def _get(client: httpx.AsyncClient, path: str, params: dict) -> dict:
    """GET a YouTube endpoint and return its decoded JSON body."""
    try:
        response = await client.get(f"{settings.youtube_api_base}{path}", params=params)
    except httpx.HTTPError as e:
        raise TransientApiError(PLATFORM, f"request to {path} failed: {e}") from e

    _raise_for_status(response)

    try:
        return response.json()
    except ValueError as e:
        raise TransientApiError(PLATFORM, f"malformed response from {path}") from e


async def search_channel_id(
    api_key: str,
    handle: str,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[str]:
    """Search for a channel by handle and return its channel id.

    Returns None when the search has no channel results.
    """
    params = {
        "part": "snippet",
        "type": "channel",
        "q": f"@{handle}",
        "maxResults": 1,
        "key": api_key,
    }
    logger.info(f"Searching YouTube channel @{handle}")

    if client:
        data = await _get(client, "/search", params)
    else:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as c:
            data = await _get(c, "/search", params)

    items = data.get("items", [])
    if not items:
        return None
    return items[0].get("id", {}).get("channelId") or items[0].get("snippet", {}).get("channelId")


async def fetch_channel_stats(
    api_key: str,
    channel_id: str,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """Fetch channel statistics from YouTube Data API v3.

    Returns channel title, subscriber count, view count and video count.
    Raises NotFoundError when the id matches no channel.
    """
    params = {
        "part": "statistics,snippet",
        "id": channel_id,
        "key": api_key,
    }

    if client:
        data = await _get(client, "/channels", params)
    else:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as c:
            data = await _get(c, "/channels", params)

    items = data.get("items", [])
    if not items:
        raise NotFoundError(PLATFORM, f"no channel data for id {channel_id}")

    channel = items[0]
    snippet = channel.get("snippet", {})
    statistics = channel.get("statistics", {})

    try:
        stats = {
            "channel_id": channel_id,
            "channel_title": snippet.get("title"),
            "subscriber_count": int(statistics.get("subscriberCount", 0)),
            "view_count": int(statistics.get("viewCount", 0)),
            "video_count": int(statistics.get("videoCount", 0)),
        }
    except (TypeError, ValueError) as e:
        raise TransientApiError(PLATFORM, f"malformed statistics for {channel_id}: {e}") from e

    logger.info(
        f"YouTube stats fetched for {stats['channel_title']}: "
        f"{stats['subscriber_count']} subscribers, "
        f"{stats['video_count']} videos"
    )
    return stats
