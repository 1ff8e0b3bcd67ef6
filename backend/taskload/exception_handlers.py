"""Exception handlers rendering every error as the same JSON envelope."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskload.errors import AppError

logger = structlog.get_logger()


def error_response(message: str, status_code: int) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"message": message, "status_code": status_code},
        },
    )


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        # Drop the leading "body"/"query" segment from the location
        loc = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(parts)


async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
    if exc.status_code >= 500:
        logger.error("Application error", path=request.url.path, error=exc.message)
    return error_response(exc.message, exc.status_code)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> ORJSONResponse:
    response = error_response(str(exc.detail), exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    message = f"Validation Error: {_format_validation_errors(exc)}"
    logger.info("Request validation failed", path=request.url.path, detail=message)
    return error_response(message, status.HTTP_400_BAD_REQUEST)


async def unhandled_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
