"""
Data model definitions package.

Aggregates Pydantic models for use in other modules.
"""

from .inbound_request import InboundRequest
from .route import MatchedRoute
from .sales_channel import ResolvedSalesChannel, SalesChannel

__all__ = [
    "InboundRequest",
    "MatchedRoute",
    "ResolvedSalesChannel",
    "SalesChannel",
]
