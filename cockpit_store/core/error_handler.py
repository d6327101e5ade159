"""
Error handling and sanitization

- StorefrontError subclasses -> their own status and {code, message, details}
- Internal errors -> generic message unless DEBUG, full details logged
- Anything else -> caught by ErrorSanitizationMiddleware, generic 500
"""
import logging
import traceback
from typing import Union

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from cockpit_store.core.config import settings
from cockpit_store.core.exceptions import StorefrontError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An internal error occurred. Please try again later."

# Patterns that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "credential",
    "sqlalchemy",
    "asyncpg",
    "postgresql",
    "sqlite",
    "traceback",
    "file \"",
]


def is_sensitive_error(message: str) -> bool:
    """Check if error message contains sensitive information."""
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """Sanitize an error message for safe client exposure."""
    message = error if isinstance(error, str) else str(error)

    # In debug mode, return full message
    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return GENERIC_ERROR_MESSAGE

    # Truncate very long messages
    if len(message) > 200:
        return message[:200] + "..."

    return message


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Render a StorefrontError as {code, message, details}."""
    if exc.http_status >= 500:
        logger.error(
            f"{exc.__class__.__name__} [{exc.code}] on {request.method} {request.url.path}: "
            f"{exc.message} {exc.details}",
            exc_info=exc,
        )
        if not settings.DEBUG:
            return JSONResponse(
                status_code=exc.http_status,
                content={"code": exc.code, "message": GENERIC_ERROR_MESSAGE, "details": {}},
            )
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.http_status,
        content={
            "code": exc.code,
            "message": sanitize_error_message(exc.message),
            "details": exc.details,
        },
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch unhandled exceptions and sanitize error responses.

    - In production: Returns generic error, logs full details
    - In development: Returns full error for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException:
            # Let FastAPI handle HTTPExceptions normally
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}: {str(e)}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            if settings.DEBUG:
                return JSONResponse(
                    status_code=500,
                    content={
                        "code": "INTERNAL_ERROR",
                        "message": str(e),
                        "details": {"type": type(e).__name__, "error_id": error_id},
                    }
                )
            return JSONResponse(
                status_code=500,
                content={
                    "code": "INTERNAL_ERROR",
                    "message": GENERIC_ERROR_MESSAGE,
                    "details": {"error_id": error_id},
                }
            )
