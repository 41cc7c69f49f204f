"""
Exception Handlers

Every failure leaves the API in the response envelope with a machine-readable
``error`` code. Unexpected errors are logged with their details; clients only
see a generic message.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from admin_service.errors import ServiceError, UpstreamError

logger = structlog.get_logger(__name__)


def _envelope(status_code: int, message: str, error: str, **extra) -> JSONResponse:
    content = {"success": False, "message": message, "error": error}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        error_code=exc.error_code,
        error=exc.message,
        upstream_status=getattr(exc, "upstream_status", None),
    )

    if isinstance(exc, UpstreamError):
        return _envelope(
            exc.status_code,
            exc.message,
            exc.error_code,
            upstreamStatus=exc.upstream_status,
        )
    return _envelope(exc.status_code, exc.message, exc.error_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    logger.info("Request validation failed", path=request.url.path, errors=details)
    return _envelope(400, "Validation failed", "VALIDATION_ERROR", details=details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
    return _envelope(500, "Internal server error", "INTERNAL_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
