"""
Core logic package.

Provides request classification, client IP resolution and upstream proxying.
"""

from .client_ip import ClientIpResolver, TrustedProxyClientIpResolver
from .ip_allowlist import IpAllowList, normalize_ip, parse_allowed_ip_addresses

__all__ = [
    "ClientIpResolver",
    "TrustedProxyClientIpResolver",
    "IpAllowList",
    "normalize_ip",
    "parse_allowed_ip_addresses",
]
