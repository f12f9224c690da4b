"""
Rate Limiting Configuration

Uses SlowAPI. Counters live in the limiter's storage backend (in-memory by
default, Redis via RATE_LIMIT_STORAGE_URI); the limiter is attached to
app.state rather than read from module globals by handlers.
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Get client IP, respecting X-Forwarded-For for proxied requests.
    Falls back to direct IP if header not present.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First IP in the chain is the original client
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def create_limiter() -> Limiter:
    return Limiter(
        key_func=get_client_ip,
        enabled=settings.RATE_LIMIT_ENABLED,
        default_limits=[settings.RATE_LIMIT_DEFAULT],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    )


limiter = create_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns structured JSON response with retry-after header.
    """
    logger.warning(
        f"Rate limit exceeded: {get_client_ip(request)} on {request.url.path}"
    )

    retry_after = exc.detail.split("per")[0].strip() if exc.detail else "1 minute"

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": f"Too many requests. Please try again in {retry_after}.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": "60"},
    )


def get_admin_limit():
    """Rate limit for expensive admin endpoints (catalog sync)."""
    return limiter.limit(settings.RATE_LIMIT_ADMIN)
