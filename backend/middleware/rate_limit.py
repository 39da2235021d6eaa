"""Per-client limits for endpoints that spend platform API quota.

Every channel add costs at least one search and one statistics call on
the platform, so it is throttled by client IP.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config import get_settings

logger = logging.getLogger(__name__)

ADD_CHANNEL_LIMIT = get_settings().add_channel_rate_limit

limiter = Limiter(key_func=get_remote_address)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    client = get_remote_address(request)
    logger.warning(f"Rate limit hit by {client} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many channels added from this address. Try again later.",
            "limit": exc.detail,
        },
    )
