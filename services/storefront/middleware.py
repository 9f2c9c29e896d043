"""
Where: services/storefront/middleware.py
What: Gateway HTTP middleware for request-id propagation, access logging and
      maintenance mode redirects.
Why: Isolate cross-cutting request concerns from app assembly.
"""

import logging
import time

from fastapi import Request
from fastapi.responses import RedirectResponse

from services.common.core.request_context import accept_request_id, clear_request_id

logger = logging.getLogger("storefront.main")

REQUEST_ID_HEADER = "X-Request-Id"


async def request_context_middleware(request: Request, call_next):
    """Middleware for Request ID propagation and structured access logging."""
    start_time = time.perf_counter()
    req_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))

    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = req_id

        process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
        inbound = getattr(request.state, "inbound_request", None)

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": str(request.query_params),
                "status": response.status_code,
                "latency_ms": process_time_ms,
                "user_agent": request.headers.get("user-agent"),
                "client_ip": inbound.client_ip if inbound else None,
                "sales_channel_id": inbound.sales_channel_id if inbound else None,
            },
        )

        return response
    finally:
        clear_request_id()


async def maintenance_mode_middleware(request: Request, call_next):
    """
    Redirect visitors of a sales channel in maintenance to its maintenance page.

    The classified request is kept on request.state for the route handlers.
    """
    state = request.app.state
    inbound = state.request_builder.build(request)
    request.state.inbound_request = inbound

    if state.maintenance_resolver.should_redirect(inbound):
        target = f"{inbound.base_path}{state.config.MAINTENANCE_PAGE_PATH}"
        logger.info(
            "Redirecting to maintenance page",
            extra={
                "sales_channel_id": inbound.sales_channel_id,
                "route_name": inbound.route_name,
                "client_ip": inbound.client_ip,
                "path": request.url.path,
                "location": target,
            },
        )
        return RedirectResponse(url=target, status_code=307)

    return await call_next(request)
