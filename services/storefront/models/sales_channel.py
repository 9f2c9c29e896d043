"""
Sales channel models.

A sales channel is a storefront reachable under one or more domains, each
optionally mounted under a URL path prefix.
"""

from typing import Any, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.ip_allowlist import parse_allowed_ip_addresses


class SalesChannel(BaseModel):
    """
    Sales channel configuration entry from sales_channels.yml.
    """

    id: str
    name: Optional[str] = None
    domains: List[str] = Field(default_factory=list)
    maintenance: bool = False
    maintenance_ip_allowlist: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator("maintenance_ip_allowlist", mode="before")
    @classmethod
    def _decode_allowlist(cls, value: Any) -> FrozenSet[str]:
        return parse_allowed_ip_addresses(value)

    @field_validator("domains", mode="before")
    @classmethod
    def _coerce_domains(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class ResolvedSalesChannel(BaseModel):
    """
    Result of resolving a request host/path to a sales channel.
    """

    sales_channel: SalesChannel
    base_path: str = ""

    def relative_path(self, path: str) -> str:
        """Strip the channel's base path from a request path."""
        if not self.base_path:
            return path or "/"
        remainder = path[len(self.base_path) :]
        return remainder or "/"
