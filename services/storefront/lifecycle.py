"""
Where: services/storefront/lifecycle.py
What: Gateway startup/shutdown orchestration for shared resources.
Why: Keep main.py focused on app assembly while preserving lifecycle behavior.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from services.common.core.http_client import HttpClientFactory

from .config import StorefrontConfig
from .core.client_ip import TrustedProxyClientIpResolver
from .core.maintenance import MaintenanceAccessResolver
from .core.request_builder import InboundRequestBuilder
from .services.config_reloader import ConfigReloader
from .services.route_matcher import RouteMatcher
from .services.sales_channel_registry import SalesChannelRegistry

logger = logging.getLogger("storefront.main")


@asynccontextmanager
async def manage_lifespan(app: FastAPI, storefront_config: StorefrontConfig) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    factory = HttpClientFactory(storefront_config)
    factory.configure_global_settings()
    client = factory.create_async_client(timeout=storefront_config.UPSTREAM_TIMEOUT)

    reloader = ConfigReloader(
        interval=storefront_config.CONFIG_RELOAD_INTERVAL,
        enabled=storefront_config.CONFIG_RELOAD_ENABLED,
        lock_timeout=storefront_config.CONFIG_RELOAD_LOCK_TIMEOUT,
    )

    try:
        sales_channel_registry = SalesChannelRegistry(storefront_config.SALES_CHANNELS_CONFIG_PATH)
        route_matcher = RouteMatcher(
            storefront_config.ROUTING_CONFIG_PATH,
            maintenance_page_path=storefront_config.MAINTENANCE_PAGE_PATH,
            error_page_path=storefront_config.ERROR_PAGE_PATH,
        )

        sales_channel_registry.load_sales_channels_config()
        route_matcher.load_routing_config()

        client_ip_resolver = TrustedProxyClientIpResolver(
            trusted_proxies=storefront_config.trusted_proxies,
            trusted_headers=storefront_config.trusted_proxy_headers,
        )

        reloader.watch(
            sales_channel_registry.config_path,
            lambda: sales_channel_registry.load_sales_channels_config(force=True),
        )
        reloader.watch(
            route_matcher.config_path,
            lambda: route_matcher.load_routing_config(force=True),
        )
        reloader.start()

        # Store in app.state for DI
        app.state.config = storefront_config
        app.state.http_client = client
        app.state.sales_channel_registry = sales_channel_registry
        app.state.route_matcher = route_matcher
        app.state.client_ip_resolver = client_ip_resolver
        app.state.request_builder = InboundRequestBuilder(
            sales_channel_registry, route_matcher, client_ip_resolver
        )
        app.state.maintenance_resolver = MaintenanceAccessResolver()
        app.state.reloader = reloader

        logger.info(
            "Storefront gateway initialized",
            extra={
                "upstream_url": storefront_config.UPSTREAM_URL,
                "trusted_proxies": storefront_config.trusted_proxies,
            },
        )

        yield
    finally:
        reloader.stop()
        logger.info("Storefront gateway shutting down, closing http client.")
        await client.aclose()
