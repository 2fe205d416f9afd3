# backend/core/error_handling.py

"""
Error types shared by the storefront services and the route decorator
that maps them onto HTTP responses.

Services raise these typed errors at input boundaries; pure computations
(pricing, loyalty resolution) assume validated input and never raise them.
"""

from typing import Callable, Dict, Any, Optional
from functools import wraps
import logging
import inspect
import traceback

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors"""

    error_code = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(APIError):
    """Resource not found error"""

    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} with identifier {identifier} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "identifier": str(identifier)},
        )


class ConflictError(APIError):
    """Resource conflict error"""

    error_code = "CONFLICT"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message, status_code=status.HTTP_409_CONFLICT, details=details
        )


class APIValidationError(APIError):
    """Input validation error - named to avoid the Pydantic ValidationError collision"""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"validation_errors": errors} if errors else {},
        )


def handle_api_errors(func: Callable) -> Callable:
    """
    Decorator to translate service errors into HTTP errors.
    Handles both async and sync route functions.

    Usage:
        @router.post("/summary")
        @handle_api_errors
        async def cart_summary(request: CartSummaryRequest):
            ...
    """

    def handle_exception(e: Exception, func_name: str) -> None:
        if isinstance(e, HTTPException):
            raise e

        if isinstance(e, APIError):
            logger.warning(
                f"API Error in {func_name}: {e.message}",
                extra={"status_code": e.status_code, "details": e.details},
            )
            raise HTTPException(
                status_code=e.status_code,
                detail={
                    "message": e.message,
                    "error_code": e.error_code,
                    "details": e.details,
                },
            )

        if isinstance(e, ValidationError):
            logger.warning(f"Pydantic validation error in {func_name}: {e.errors()}")
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"message": "Request validation failed", "errors": e.errors()},
            )

        if isinstance(e, IntegrityError):
            logger.error(f"Database integrity error in {func_name}: {str(e.orig)}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "message": "Database constraint violation",
                    "type": "integrity_error",
                },
            )

        if isinstance(e, OperationalError):
            logger.error(f"Database operational error in {func_name}: {str(e.orig)}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={
                    "message": "Database service temporarily unavailable",
                    "type": "operational_error",
                },
            )

        logger.error(
            f"Unexpected error in {func_name}: {str(e)}\n{traceback.format_exc()}"
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "An unexpected error occurred"},
        )

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                handle_exception(e, func.__name__)

        return async_wrapper

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            handle_exception(e, func.__name__)

    return sync_wrapper
