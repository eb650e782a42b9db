"""
Exception handlers rendering every failure in the response envelope
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from jobtrail.core.exceptions import JobTrailError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import (ErrorCode, error_code_for_status,
                                     error_response)

logger = LoggingConfig.get_logger(__name__)


async def jobtrail_error_handler(request: Request, exc: JobTrailError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            exc_info=exc,
            extra={"error": exc.message, "error_code": int(exc.error_code)},
        )
    else:
        logger.info(
            f"Request rejected: {exc.message}",
            extra={"status_code": exc.status_code, "error_code": int(exc.error_code)},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, exc.error_code, exc.errors),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message, error_code_for_status(exc.status_code)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(location) or None,
            "message": error.get("msg", "Invalid value"),
        })
    return JSONResponse(
        status_code=422,
        content=error_response("Validation failed", ErrorCode.VALIDATION_ERROR, errors),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything unexpected and hide its details from the client"""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=500,
        content=error_response("Internal server error", ErrorCode.INTERNAL_ERROR),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(JobTrailError, jobtrail_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
