"""Global error handling.

Every exception is converted to the same JSON body:
``{error_code, message, user_message, suggestion, retry_allowed, details?}``.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from statement_import.config import settings
from statement_import.core.errors import get_error
from statement_import.core.exceptions import StatementImportError

logger = logging.getLogger(__name__)


def error_body(error_code: str, details: dict | None = None) -> dict:
    """Build the response body for a catalog error code."""
    error_info = get_error(error_code)
    body = {
        "error_code": error_code,
        "message": error_info["message"],
        "user_message": error_info["user_message"],
        "suggestion": error_info["suggestion"],
        "retry_allowed": error_info["retry_allowed"],
    }
    if details:
        body["details"] = details
    return body


async def handle_statement_import_error(
    request: Request, exc: StatementImportError
) -> JSONResponse:
    """Handle statement import exceptions.

    Args:
        request: The incoming request
        exc: The statement import exception

    Returns:
        JSONResponse with error details from catalog
    """
    extra = {"error_code": exc.error_code, "path": request.url.path, "method": request.method}
    if exc.http_status >= 500:
        logger.error(f"Statement import error: {exc.error_code}", extra=extra)
    else:
        logger.warning(f"Statement import error: {exc.error_code}", extra=extra)

    return JSONResponse(status_code=exc.http_status, content=error_body(exc.error_code, exc.details))


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors.

    Args:
        request: The incoming request
        exc: The validation error

    Returns:
        JSONResponse with field-level messages
    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(x) for x in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        error_messages.append(f"{field}: {msg}")

    logger.warning(
        f"Validation error on {request.url.path}",
        extra={"path": request.url.path, "method": request.method, "error_code": "VAL_001"},
    )

    body = error_body("VAL_001")
    body["message"] = " | ".join(error_messages) or body["message"]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def handle_generic_error(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: The incoming request
        exc: The unexpected exception

    Returns:
        JSONResponse with generic error message
    """
    extra = {
        "error_type": type(exc).__name__,
        "path": request.url.path,
        "method": request.method,
    }
    # In non-debug: do not log str(exc) or traceback (may include statement text).
    if settings.debug:
        logger.exception(f"Unexpected error on {request.url.path}", extra=extra)
    else:
        logger.error(f"Unexpected error on {request.url.path}", extra=extra)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("SYS_001"),
    )
