"""
Rate Limiting Middleware

Protects the public chat endpoint from abuse using SlowAPI with a Redis
backend. Widget requests are keyed by agent and client address.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, status
from fastapi.responses import JSONResponse
from agentdesk.config import settings
import logging

logger = logging.getLogger(__name__)


def rate_limit_key(request: Request) -> str:
    """
    Rate limit key for a request

    Format: "agent:{agent_id}:ip:{address}" when the route carries an
    agent id, otherwise "ip:{address}".
    """
    address = get_remote_address(request)
    agent_id = request.path_params.get("agent_id") if request.path_params else None
    if agent_id:
        return f"agent:{agent_id}:ip:{address}"
    return f"ip:{address}"


limiter = Limiter(
    key_func=rate_limit_key,
    storage_uri=settings.REDIS_URL if settings.RATE_LIMIT_ENABLED else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED
)


def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Return a 429 with a Retry-After hint"""
    logger.warning(f"Rate limit exceeded for {rate_limit_key(request)} on {request.url.path}")

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down.",
            "limit": str(exc.detail),
            "endpoint": request.url.path,
        },
        headers={"Retry-After": "60"},
    )


def chat_rate_limit():
    """Rate limit for the widget chat endpoint"""
    return limiter.limit(settings.RATE_LIMIT_CHAT)


def upload_rate_limit():
    """Rate limit for document uploads"""
    return limiter.limit(settings.RATE_LIMIT_UPLOAD)


def setup_rate_limiting(app):
    """
    Setup rate limiting middleware

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)

    if settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting enabled with Redis backend")
    else:
        logger.warning("Rate limiting disabled")
