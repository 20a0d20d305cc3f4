import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import Settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = 'Too many requests from this IP, please try again later.'


def create_limiter(settings: Settings) -> Limiter:
    """Per-client-IP limiter applied to every route not marked exempt.

    RATE_LIMIT_MAX <= 0 turns limiting off.
    """
    default_limits = []
    if settings.rate_limit_max > 0:
        default_limits.append(f"{settings.rate_limit_max} per {settings.rate_limit_window_seconds} seconds")
    return Limiter(
        key_func=get_remote_address,
        default_limits=default_limits,
        storage_uri="memory://",
        enabled=bool(default_limits),
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": RATE_LIMIT_MESSAGE, "data": None, "error": None},
    )
