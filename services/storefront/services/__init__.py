"""
Services package.

Provides configuration-backed lookups used on every request.
"""

from .config_reloader import ConfigReloader
from .route_matcher import RouteMatcher
from .sales_channel_registry import SalesChannelRegistry

__all__ = [
    "ConfigReloader",
    "RouteMatcher",
    "SalesChannelRegistry",
]
