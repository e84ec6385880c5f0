import sys
import uuid

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from deploy_service.config import settings

from .logging_config import logger

# Rate limiting is disabled whenever pytest is running.
IS_TEST_MODE = "pytest" in sys.modules


def get_limiter_key(request: Request):
    if IS_TEST_MODE:
        # A unique key per request never hits a limit.
        return str(uuid.uuid4())
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_limiter_key,
    default_limits=[settings.GENERAL_RATE_LIMIT],
    strategy="fixed-window",
)

if IS_TEST_MODE:

    def noop_limit(limit_string, key_func=None):
        def decorator(func):
            # Marked so tests can check the decorator was applied.
            func.__slowapi_decorated__ = True
            return func

        return decorator

    limiter.limit = noop_limit
    logger.info("Rate limiting disabled for test environment")

DEPLOY_SUBMIT_LIMIT = settings.DEPLOY_SUBMIT_RATE_LIMIT


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Custom handler for rate limit exceeded exceptions"""
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded", "limit": exc.detail},
    )


def setup_rate_limiting(app):
    """Configure rate limiting for the FastAPI application"""
    app.state.limiter = limiter

    if IS_TEST_MODE:
        logger.info("Rate limiting is disabled in test mode")
    else:
        logger.info(
            f"Rate limiting is enabled: general={settings.GENERAL_RATE_LIMIT}, "
            f"deploy submit={DEPLOY_SUBMIT_LIMIT}"
        )

    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
