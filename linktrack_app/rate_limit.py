"""
Request rate limits (slowapi).

Link creation is limited per owner, the listing and analytics routes per
client IP. Counters live in settings.rate_limit_storage_uri; point it at
Redis to share them between API instances.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from linktrack_app.config import settings


def get_owner_key(request: Request) -> str:
    """X-Owner-Id when present, the client address otherwise."""
    owner_id = request.headers.get("X-Owner-Id")
    if owner_id:
        return f"owner:{owner_id}"
    return get_remote_address(request)


def creation_limit() -> str:
    return settings.rate_limit_create


def api_limit() -> str:
    return settings.rate_limit_api


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": f"Too many requests, limit is {exc.detail}. Please try again later."},
    )
