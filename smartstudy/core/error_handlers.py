"""Translate every failure into the ``{"success": false, "error": {...}}`` envelope."""
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from smartstudy.core.exceptions import (
    ConflictError,
    StudyPlatformError,
    ValidationError,
    error_response,
)

logger = logging.getLogger("smartstudy.errors")

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "AUTH_FAILED",
    403: "NOT_AUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
}


def _debug(request: Request) -> bool:
    return request.app.state.context.settings.DEBUG


def _respond(error: StudyPlatformError, headers=None) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error_response(error), headers=headers)


async def platform_error_handler(request: Request, exc: StudyPlatformError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return _respond(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError.from_errors(exc.errors())
    logger.info("%s %s -> 400 %s", request.method, request.url.path, error.message)
    return _respond(error)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} not found"
    error = StudyPlatformError(
        message,
        code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        status_code=exc.status_code,
    )
    return _respond(error, headers=getattr(exc, "headers", None))


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return _respond(ConflictError("Duplicate value"))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    if _debug(request):
        error = StudyPlatformError(
            str(exc) or "Server Error",
            details={"stack": traceback.format_exception(type(exc), exc, exc.__traceback__)},
        )
    else:
        error = StudyPlatformError("Server Error")
    return _respond(error)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StudyPlatformError, platform_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
