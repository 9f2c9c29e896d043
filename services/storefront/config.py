"""
Storefront gateway configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys
from typing import List

from pydantic import Field

from services.common.core.config import BaseAppConfig


class StorefrontConfig(BaseAppConfig):
    """
    Configuration management for the storefront gateway.
    """

    # Server settings
    UVICORN_BIND_ADDR: str = Field(default="0.0.0.0:8000", description="Listen address")

    # Upstream storefront
    UPSTREAM_URL: str = Field(
        default="http://storefront:8080", description="Base URL of the upstream storefront"
    )
    UPSTREAM_TIMEOUT: float = Field(default=30.0, description="Upstream request timeout (seconds)")

    # Path settings
    SALES_CHANNELS_CONFIG_PATH: str = Field(
        default="/app/config/sales_channels.yml", description="Sales channel definition file path"
    )
    ROUTING_CONFIG_PATH: str = Field(
        default="/app/config/routing.yml", description="Route definition file path"
    )

    # Maintenance mode
    MAINTENANCE_PAGE_PATH: str = Field(
        default="/maintenance", description="Maintenance page path, relative to the channel"
    )
    ERROR_PAGE_PATH: str = Field(
        default="/error", description="Error page path, reachable during maintenance"
    )
    MAINTENANCE_RETRY_AFTER: int = Field(
        default=300, description="Retry-After header on the maintenance page (seconds)"
    )
    MAINTENANCE_TEMPLATE_PATH: str = Field(
        default="", description="Optional HTML template for the maintenance page"
    )

    # Client IP resolution
    TRUSTED_PROXIES: str = Field(
        default="", description="Comma separated IPs/CIDRs allowed to forward client IPs"
    )
    TRUSTED_PROXY_HEADERS: str = Field(
        default="forwarded,x-forwarded-for",
        description="Comma separated forwarding headers to honor, in priority order",
    )

    # Hot reload
    CONFIG_RELOAD_ENABLED: bool = Field(default=True, description="Watch config files")
    CONFIG_RELOAD_INTERVAL: float = Field(default=2.0, description="Watch interval (seconds)")
    CONFIG_RELOAD_LOCK_TIMEOUT: float = Field(
        default=5.0, description="Max wait for a reload to finish on shutdown (seconds)"
    )

    # FastAPI settings
    root_path: str = Field(default="", description="API root path (for proxy)")

    @property
    def trusted_proxies(self) -> List[str]:
        return _split_csv(self.TRUSTED_PROXIES)

    @property
    def trusted_proxy_headers(self) -> List[str]:
        return [h.lower() for h in _split_csv(self.TRUSTED_PROXY_HEADERS)]


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


# Load config as a singleton.
# pydantic-settings reads environment variables during instantiation.
try:
    config = StorefrontConfig()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
