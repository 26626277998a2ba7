"""
Exception handlers rendering the error envelope
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from update_manager.core.errors import UpdateManagerError
from update_manager.core.responses import error_response

logger = structlog.get_logger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "INVALID_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    408: "CANCELLED",
    409: "CONFLICT",
    413: "INVALID_REQUEST",
    500: "INTERNAL_ERROR",
}


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "INTERNAL_ERROR" if status_code >= 500 else "INVALID_REQUEST")


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def domain_exception_handler(request: Request, exc: UpdateManagerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        content=error_response(exc.code, exc.message),
        status_code=exc.status_code,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        content=error_response(_default_code(exc.status_code), message),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        content=error_response("INVALID_REQUEST", _format_validation_errors(exc)),
        status_code=400,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        content=error_response("INTERNAL_ERROR", "Internal server error"),
        status_code=500,
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(UpdateManagerError, domain_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
