"""Maps click tracker errors to HTTP responses.

The status code comes from the error's ErrorKind; message text is never
inspected.
"""

import logging
from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clicktracker.domain.errors import (
    ApiError,
    ClickTrackerError,
    ContactNotFoundError,
    ErrorKind,
    MissingParameterError,
)

logger = logging.getLogger(__name__)

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.MISSING_PARAMETER: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM: 500,
    ErrorKind.INTERNAL: 500,
}

GENERIC_ERROR_MESSAGE = "An unexpected error occurred while processing your request"


def error_body(error: ClickTrackerError) -> Dict[str, Any]:
    if isinstance(error, ApiError):
        return {"error": "API Error", "message": error.message, "code": error.code}
    if isinstance(error, MissingParameterError):
        return {"error": str(error), "message": error.hint or str(error)}
    if isinstance(error, ContactNotFoundError):
        return {"error": "Contact not found", "message": error.message}
    if error.kind is ErrorKind.NOT_FOUND:
        return {"error": "Resource not found", "message": error.message}
    if error.kind is ErrorKind.RATE_LIMITED:
        return {"error": "Rate limit exceeded", "message": error.message}
    return {"error": "Internal server error", "message": GENERIC_ERROR_MESSAGE}


async def click_tracker_error_handler(request: Request, exc: ClickTrackerError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"Error processing {request.url.path}: {exc!r}")
    else:
        logger.info(f"{request.url.path} -> {status_code}: {exc}")
    return JSONResponse(status_code=status_code, content=error_body(exc))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error processing {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": GENERIC_ERROR_MESSAGE},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        content = {"error": "Not found", "message": "The requested endpoint does not exist"}
    else:
        content = {"error": str(exc.detail), "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)
