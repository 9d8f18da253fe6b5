"""
Central rendering of errors for the Code Reveal API.

Every error body has the shape ``{"status": "error", "message": ..., "code": ...}``
so the companion view can branch on ``status`` alone.
"""

import logging
from typing import Mapping, Optional

from app.core.exceptions import BaseAppException
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    message: str,
    code: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Build an error response in the API's error shape.

    ``code`` is omitted from the body when not given.
    """
    content = {"status": "error", "message": message}
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def base_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    """Render an application exception.

    Client errors are logged as warnings, server errors as errors.
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{request.method} {request.url.path} -> {exc.status_code} "
        f"{exc.error_code}: {exc.detail}"
    )
    return error_response(exc.status_code, exc.detail, exc.error_code, exc.headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render anything else as a generic 500 without leaking details."""
    logger.exception(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}"
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        "INTERNAL_SERVER_ERROR",
    )
