"""
Custom exception classes.

Represent errors related to forwarding requests to the upstream storefront.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StorefrontGatewayError(Exception):
    """Base exception class for the storefront gateway."""

    pass


class UpstreamUnavailableError(StorefrontGatewayError):
    """Raised when the upstream storefront cannot be reached."""

    def __init__(self, url: str, cause: Exception, message: Optional[str] = None):
        self.url = url
        self.cause = cause
        super().__init__(message or f"Upstream unreachable ({url}): {cause}")


class UpstreamTimeoutError(UpstreamUnavailableError):
    """Raised when the upstream storefront does not answer in time."""

    def __init__(self, url: str, cause: Exception):
        super().__init__(url, cause, f"Upstream timed out ({url})")


# ===========================================
# Exception Handlers
# ===========================================


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    logger.error(
        f"Global exception handler caught: {exc}",
        exc_info=exc,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTPException.
    """
    return JSONResponse(
        status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for validation errors.
    """
    return JSONResponse(
        status_code=422,
        content={"message": "Validation Error", "detail": str(exc.errors())},
    )
