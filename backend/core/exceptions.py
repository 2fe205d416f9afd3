"""
Exception handlers for consistent API error responses.

Errors raised outside of ``handle_api_errors``-decorated routes (dependencies,
middleware) still reach the client in the same JSON shape.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
import logging

from .error_handling import APIError

logger = logging.getLogger(__name__)


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Render service errors raised outside decorated routes"""
    logger.warning(f"{type(exc).__name__} at {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error_code": exc.error_code,
            "details": exc.details,
            "path": str(request.url.path),
        },
    )


async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Convert ValueError to consistent API response"""
    logger.warning(f"ValueError at {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": str(exc),
            "error_code": "VALIDATION_ERROR",
            "path": str(request.url.path),
        },
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(ValueError, handle_value_error)
