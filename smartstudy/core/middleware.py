"""HTTP middleware: request ids and access logging."""
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from smartstudy.core.logging_config import generate_request_id, set_request_id

logger = logging.getLogger("smartstudy.http")

SKIP_LOGGING_PATHS = ("/health", "/docs", "/openapi.json")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an id and log method, path, status and duration.

    The id comes from an incoming ``X-Request-ID`` header when present and is
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id
        if not request.url.path.startswith(SKIP_LOGGING_PATHS):
            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
        return response
