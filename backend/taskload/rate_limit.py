"""Request rate limiting.

Every API route shares the per-minute default limit; the auth endpoints
carry a stricter limit of their own. Counters live in Redis when the cache
is enabled so that all workers share them, and in process memory otherwise.
"""

import structlog
from fastapi import Request
from fastapi.responses import ORJSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from taskload.config import get_settings
from taskload.exception_handlers import error_response

logger = structlog.get_logger()
settings = get_settings()


def client_identifier(request: Request) -> str:
    return f"ip:{get_remote_address(request)}"


def _storage_uri() -> str:
    return settings.redis_url if settings.cache_enabled else "memory://"


limiter = Limiter(
    key_func=client_identifier,
    default_limits=[f"{settings.rate_limit_requests_per_minute}/minute"],
    storage_uri=_storage_uri(),
    strategy="fixed-window",
    enabled=settings.rate_limit_enabled,
)


def auth_rate_limit():
    """Stricter limit for credential endpoints."""
    return limiter.limit(f"{settings.rate_limit_auth_requests_per_minute}/minute")


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> ORJSONResponse:
    retry_after = exc.limit.limit.get_expiry() if exc.limit else 60
    logger.warning(
        "Rate limit exceeded",
        client=client_identifier(request),
        path=request.url.path,
        limit=str(exc.detail),
    )
    response = error_response("Too many requests, please try again later", 429)
    response.headers["Retry-After"] = str(retry_after)
    return response
