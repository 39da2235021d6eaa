"""Validate channel URLs and extract the handle used for lookups."""

import re

from models.channel import Platform

_HANDLE = r"[a-zA-Z0-9_.-]+"

CHANNEL_URL_PATTERNS: dict[Platform, list[re.Pattern]] = {
    Platform.YOUTUBE: [
        re.compile(rf"^(?:https?://)?(?:www\.|m\.)?youtube\.com/@(?P<handle>{_HANDLE})/?(?:[?#].*)?$"),
        re.compile(rf"^(?:https?://)?(?:www\.|m\.)?youtube\.com/channel/(?P<handle>{_HANDLE})/?(?:[?#].*)?$"),
        re.compile(rf"^(?:https?://)?(?:www\.|m\.)?youtube\.com/c/(?P<handle>{_HANDLE})/?(?:[?#].*)?$"),
        re.compile(rf"^@(?P<handle>{_HANDLE})$"),
    ],
    Platform.TIKTOK: [
        re.compile(rf"^(?:https?://)?(?:www\.|m\.)?tiktok\.com/@(?P<handle>{_HANDLE})/?(?:[?#].*)?$"),
        re.compile(rf"^@(?P<handle>{_HANDLE})$"),
    ],
}

FORMAT_HINTS = {
    Platform.YOUTUBE: "Invalid format. Use: https://youtube.com/@channelname or @channelname",
    Platform.TIKTOK: "Invalid format. Use: https://tiktok.com/@username or @username",
}


class InvalidChannelUrl(ValueError):
    """The URL does not match any supported format for the platform."""


def extract_handle(url: str, platform: Platform | str) -> str:
    """Return the handle (without '@') from a channel URL or bare @handle.

    >>> extract_handle("https://www.youtube.com/@discovery", "youtube")
    'discovery'
    """
    platform = Platform(platform)
    value = url.strip()
    for pattern in CHANNEL_URL_PATTERNS[platform]:
        match = pattern.match(value)
        if match:
            return match.group("handle")
    raise InvalidChannelUrl(FORMAT_HINTS[platform])


def is_valid_channel_url(url: str, platform: Platform | str) -> bool:
    try:
        extract_handle(url, platform)
    except InvalidChannelUrl:
        return False
    return True
