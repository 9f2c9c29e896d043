"""
InboundRequest model.

Typed, read-only view of one request as seen by the maintenance resolver.
The serving layer fills it in; the resolver never touches the raw request.
"""

from typing import Any, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.ip_allowlist import parse_allowed_ip_addresses


class InboundRequest(BaseModel):
    """
    Attributes of an inbound request relevant to maintenance mode.
    """

    model_config = ConfigDict(frozen=True)

    is_sales_channel_request: bool = False
    is_maintenance_active: bool = False
    allowed_ip_addresses: FrozenSet[str] = Field(default_factory=frozenset)
    is_allowed_in_maintenance: bool = False
    is_xml_http_request: bool = False
    client_ip: Optional[str] = None

    # Informational, used for redirects and logging only.
    sales_channel_id: Optional[str] = None
    route_name: Optional[str] = None
    base_path: str = ""

    @field_validator("allowed_ip_addresses", mode="before")
    @classmethod
    def _decode_allowed_ip_addresses(cls, value: Any) -> FrozenSet[str]:
        return parse_allowed_ip_addresses(value)
