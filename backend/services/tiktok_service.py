"""TikTok statistics via the TokInsight API.

Resolves a TikTok username to its numeric uid, then fetches the profile's
follower and like counts. TokInsight does not expose view or video totals.
"""

import logging
from typing import Optional

import httpx

from config import get_settings
from services.errors import ApiError, NotFoundError, QuotaExceededError, TransientApiError

logger = logging.getLogger(__name__)
settings = get_settings()

PLATFORM = "tiktok"
USER_AGENT = "ChannelStatsTracker/1.0"


def _is_quota_message(message: str) -> bool:
    lowered = message.lower()
    return "quota" in lowered or "limit" in lowered or "unauthorized" in lowered


async def _call_api(
    client: httpx.AsyncClient,
    api_key: str,
    endpoint: str,
    params: dict,
) -> dict:
    """Call a TokInsight endpoint and return the decoded body.

    TokInsight reports some failures with HTTP 200 and a non-zero
    `status_code` in the body, so both are checked.
    """
    logger.debug(f"TokInsight request: {endpoint} ({', '.join(params)})")
    try:
        response = await client.get(
            f"{settings.tokinsight_base_url}{endpoint}",
            params={k: str(v) for k, v in params.items()},
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
        )
    except httpx.HTTPError as e:
        raise TransientApiError(PLATFORM, f"request to {endpoint} failed: {e}") from e

    if response.status_code != 200:
        text = response.text[:200]
        if response.status_code in (401, 403):
            raise QuotaExceededError(PLATFORM, text, status_code=response.status_code)
        if response.status_code == 404:
            raise NotFoundError(PLATFORM, text, status_code=404)
        if response.status_code >= 500 or response.status_code == 429:
            raise TransientApiError(PLATFORM, text, status_code=response.status_code)
        raise ApiError(PLATFORM, text, status_code=response.status_code)

    try:
        data = response.json()
    except ValueError as e:
        raise TransientApiError(PLATFORM, f"malformed response from {endpoint}") from e

    status_code = data.get("status_code")
    if status_code:
        message = data.get("status_msg") or "Unknown error"
        if _is_quota_message(message):
            raise QuotaExceededError(PLATFORM, message)
        raise ApiError(PLATFORM, message)

    return data


async def search_user_id(
    api_key: str,
    username: str,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[str]:
    """Look up the TikTok uid for a username. Returns None if unknown."""
    params = {"unique_id": username}

    if client:
        data = await _call_api(client, api_key, "/user_uniqueid/", params)
    else:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as c:
            data = await _call_api(c, api_key, "/user_uniqueid/", params)

    uid = (
        data.get("uid")
        or (data.get("user") or {}).get("uid")
        or (data.get("data") or {}).get("user_id")
    )
    if not uid:
        return None

    logger.info(f"Found TikTok uid {uid} for {username}")
    return str(uid)


async def fetch_profile_stats(
    api_key: str,
    uid: str,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """Fetch follower and like counts for a TikTok uid."""
    params = {"uid": uid}

    if client:
        data = await _call_api(client, api_key, "/user_profile/", params)
    else:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as c:
            data = await _call_api(c, api_key, "/user_profile/", params)

    profile = data.get("user") or data.get("data") or data

    try:
        stats = {
            "uid": uid,
            "nickname": profile.get("nickname") or profile.get("display_name"),
            "follower_count": int(profile.get("follower_count") or 0),
            "total_favorited": int(profile.get("total_favorited") or 0),
        }
    except (TypeError, ValueError) as e:
        raise TransientApiError(PLATFORM, f"malformed profile for uid {uid}: {e}") from e

    logger.info(
        f"TikTok stats fetched for {stats['nickname']}: "
        f"{stats['follower_count']} followers, "
        f"{stats['total_favorited']} likes"
    )
    return stats
