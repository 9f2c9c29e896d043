"""
Where: services/storefront/exceptions.py
What: Gateway exception handler registration and custom HTTP mappings.
Why: Keep error handling setup isolated from route and lifecycle concerns.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import (
    UpstreamTimeoutError,
    UpstreamUnavailableError,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)


async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError):
    return JSONResponse(
        status_code=502,
        content={"message": "Bad Gateway"},
    )


async def upstream_timeout_handler(request: Request, exc: UpstreamTimeoutError):
    return JSONResponse(
        status_code=504,
        content={"message": "Gateway Timeout"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(UpstreamTimeoutError, upstream_timeout_handler)
    app.add_exception_handler(UpstreamUnavailableError, upstream_unavailable_handler)
