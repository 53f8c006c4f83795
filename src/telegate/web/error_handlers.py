import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from telegate.errors import (
    AccessDeniedError,
    AuthenticationError,
    NotConfiguredError,
    NotFoundError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def create_json_error_response(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content)


def classify_user_error(exc: Exception) -> tuple[int, str]:
    """Status code and machine-readable type for a UserError."""
    if isinstance(exc, AuthenticationError):
        return 401, "authentication_error"
    if isinstance(exc, AccessDeniedError):
        return 403, "access_denied"
    if isinstance(exc, NotFoundError):
        return 404, "not_found"
    if isinstance(exc, ValidationError):
        return 400, "validation_error"
    if isinstance(exc, NotConfiguredError):
        return 500, "not_configured"
    # Default for any other UserError subclass
    return 400, "bad_request"


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    status_code, error_type = classify_user_error(exc)
    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def store_error_handler(_: Request, exc: Exception) -> Response:
    """Handle session store outages (503); the process keeps serving."""
    logger.error("Session store error: %s", exc)
    return create_json_error_response(
        status_code=503, message="Session storage is temporarily unavailable.", error_type="store_unavailable"
    )


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("Unexpected error: %s", exc)
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
