"""
Request rate limiting.

Uses SlowAPI keyed by client address. Counters live in Redis when the
refresh token registry does, in process memory otherwise.
"""
import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from carshop.core.config import settings

logger = logging.getLogger(__name__)

storage_uri = (
    settings.REDIS_URL
    if settings.REFRESH_REGISTRY_BACKEND == "redis" and settings.REDIS_URL
    else "memory://"
)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=storage_uri,
    enabled=settings.RATE_LIMIT_ENABLED,
    headers_enabled=False,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        f"Rate limit exceeded for {get_remote_address(request)} "
        f"on {request.method} {request.url.path}"
    )
    return JSONResponse(
        status_code=429,
        content={"message": "Too many requests, please try again later."},
    )
