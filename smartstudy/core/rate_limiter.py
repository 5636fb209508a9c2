"""
Rate limiting with slowapi.

One fixed-window limit per client IP over everything under the API prefix.
``RateLimitMiddleware`` checks the path itself and hits the limiter backend
directly, so it does not depend on how routers are mounted.
"""
import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from smartstudy.core.config import Settings
from smartstudy.core.exceptions import StudyPlatformError, error_response

logger = logging.getLogger("smartstudy.ratelimit")

LIMIT_SCOPE = "api"


def build_limiter(settings: Settings) -> Limiter:
    """Create the limiter (in-memory fixed window) for one application instance."""
    return Limiter(
        key_func=get_remote_address,
        storage_uri="memory://",
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
        headers_enabled=False,
    )


def rate_limited_response(settings: Settings) -> JSONResponse:
    """429 in the usual error envelope, with a Retry-After header."""
    error = StudyPlatformError(
        "Too many requests, please try again later.",
        code="RATE_LIMIT_EXCEEDED",
        status_code=429,
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error_response(error),
        headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_MINUTES * 60)},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Count every request under ``prefix`` against the client's window."""

    def __init__(self, app, limiter: Limiter, settings: Settings, prefix: str = "/api"):
        super().__init__(app)
        self.limiter = limiter
        self.settings = settings
        self.item = parse(settings.rate_limit)
        self.prefix = prefix

    def _applies_to(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self.limiter.enabled and self._applies_to(request.url.path):
            client = get_remote_address(request)
            if not self.limiter.limiter.hit(self.item, LIMIT_SCOPE, client):
                logger.warning("[RateLimit] Exceeded for %s: %s", client, self.item)
                return rate_limited_response(self.settings)
        return await call_next(request)
