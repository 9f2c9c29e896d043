"""
Storefront Gateway - maintenance aware reverse proxy

Sits in front of the storefront, sends visitors of sales channels in
maintenance mode to the maintenance page and forwards everything else to the
upstream storefront.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from .api.deps import (
    ClientIpResolverDep,
    ConfigDep,
    HttpClientDep,
    InboundRequestDep,
    MaintenanceResolverDep,
)
from .config import StorefrontConfig, config
from .core.logging_config import setup_logging
from .core.maintenance import MaintenanceAccessResolver
from .core.maintenance_page import render_maintenance_page
from .core.proxy import proxy_to_upstream, to_response
from .exceptions import register_exception_handlers
from .lifecycle import manage_lifespan
from .models import InboundRequest
from .middleware import maintenance_mode_middleware, request_context_middleware
from .services.route_matcher import MAINTENANCE_ROUTE_NAME

# Logger setup
setup_logging()
logger = logging.getLogger("storefront.main")

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ===========================================
# Endpoint definitions.
# ===========================================


async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


async def storefront_handler(
    request: Request,
    inbound: InboundRequestDep,
    resolver: MaintenanceResolverDep,
    client: HttpClientDep,
    ip_resolver: ClientIpResolverDep,
    storefront_config: ConfigDep,
) -> Response:
    """
    Catch-all route: serve the maintenance page or forward to the storefront.
    """
    if inbound.route_name == MAINTENANCE_ROUTE_NAME:
        return maintenance_page(request, inbound, resolver, storefront_config)

    upstream_response = await proxy_to_upstream(
        request,
        client,
        storefront_config.UPSTREAM_URL,
        client_ip=inbound.client_ip,
        timeout=storefront_config.UPSTREAM_TIMEOUT,
        trusted_peer=ip_resolver.is_trusted_peer(request),
    )
    return to_response(upstream_response)


def maintenance_page(
    request: Request,
    inbound: InboundRequest,
    resolver: MaintenanceAccessResolver,
    storefront_config: StorefrontConfig,
) -> Response:
    """
    Maintenance page, or a redirect back to the shop when maintenance does not
    apply to this visitor.
    """
    if resolver.should_redirect_to_shop(inbound):
        logger.info(
            "Redirecting from maintenance page to shop",
            extra={"sales_channel_id": inbound.sales_channel_id, "client_ip": inbound.client_ip},
        )
        return RedirectResponse(url=f"{inbound.base_path}/", status_code=307)

    channel_name: Optional[str] = None
    if inbound.sales_channel_id:
        channel = request.app.state.sales_channel_registry.get_sales_channel(
            inbound.sales_channel_id
        )
        if channel is not None:
            channel_name = channel.name or channel.id

    body = render_maintenance_page(
        channel_name,
        storefront_config.MAINTENANCE_RETRY_AFTER,
        storefront_config.MAINTENANCE_TEMPLATE_PATH or None,
    )
    return HTMLResponse(
        content=body,
        status_code=503,
        headers={
            "Retry-After": str(storefront_config.MAINTENANCE_RETRY_AFTER),
            "Cache-Control": "no-store, max-age=0",
        },
    )


def create_app(storefront_config: Optional[StorefrontConfig] = None) -> FastAPI:
    """Assemble the gateway application."""
    storefront_config = storefront_config or config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with manage_lifespan(app, storefront_config):
            yield

    app = FastAPI(
        title="Storefront Gateway",
        version="1.0.0",
        lifespan=lifespan,
        root_path=storefront_config.root_path,
    )

    # The last registered middleware runs first.
    app.middleware("http")(maintenance_mode_middleware)
    app.middleware("http")(request_context_middleware)

    register_exception_handlers(app)

    app.add_api_route("/health", health_check, methods=["GET"])
    app.add_api_route(
        "/{path:path}",
        storefront_handler,
        methods=PROXY_METHODS,
        include_in_schema=False,
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    host, _, port = config.UVICORN_BIND_ADDR.rpartition(":")
    uvicorn.run(app, host=host or "0.0.0.0", port=int(port or 8000))
