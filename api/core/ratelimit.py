"""Rate limiting configuration using slowapi.

SCALABILITY NOTES:
- memory:// storage does NOT work with multiple workers/replicas
- Set RATELIMIT_STORAGE_URI="redis://host:port/db" when running more than one
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from core.auth import get_user_id_from_request
from core.config import get_settings
from core.logger import get_logger

logger = get_logger(__name__)

settings = get_settings()


def _get_request_identifier(request: Request) -> str:
    """Rate limit per user when the request carries one, else per IP."""
    user_id = get_user_id_from_request(request)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


_using_redis = settings.ratelimit_storage_uri.startswith("redis://")

limiter = Limiter(
    key_func=_get_request_identifier,
    default_limits=["120/minute"],
    storage_uri=settings.ratelimit_storage_uri,
    enabled=settings.ratelimit_enabled,
    in_memory_fallback_enabled=_using_redis,
    key_prefix="pushup:",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    logger.warning(
        "ratelimit.exceeded",
        identifier=_get_request_identifier(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please slow down.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


READ_LIMIT = "60/minute"

WRITE_LIMIT = "30/minute"

EVALUATE_LIMIT = "10/minute"
