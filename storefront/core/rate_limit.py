"""
Rate limiting for the public quote endpoint.

SlowAPI with in-process storage. Limits are attached per route with
@limiter.limit(settings.RATE_LIMIT_SHIPPING); there are no global defaults.

Clients are keyed by peer address. X-Forwarded-For is only read when
RATE_LIMIT_TRUST_PROXY is set, and then only its last hop (the address
our own proxy appended) is used.
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from storefront.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_RETRY_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """Rate-limit key for a request."""
    if settings.RATE_LIMIT_TRUST_PROXY:
        hops = [hop.strip() for hop in request.headers.get("X-Forwarded-For", "").split(",") if hop.strip()]
        if hops:
            return hops[-1]
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window."""
    try:
        return int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        return DEFAULT_RETRY_SECONDS


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with the window of the limit that was hit, in seconds."""
    retry_after = retry_after_seconds(exc)
    logger.warning(
        f"Rate limit exceeded: {get_client_ip(request)} on {request.url.path} (retry in {retry_after}s)"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": f"Too many requests. Please try again in {retry_after} seconds.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )
