"""
Dependency Injection for the storefront gateway API.

Manage request handler dependencies using FastAPI Depends.
"""

from typing import Annotated

from fastapi import Depends, Request
from httpx import AsyncClient

from ..config import StorefrontConfig
from ..core.client_ip import TrustedProxyClientIpResolver
from ..core.maintenance import MaintenanceAccessResolver
from ..models import InboundRequest


# ==========================================
# 1. Service Accessors
# ==========================================


def get_config(request: Request) -> StorefrontConfig:
    return request.app.state.config


def get_http_client(request: Request) -> AsyncClient:
    return request.app.state.http_client


def get_maintenance_resolver(request: Request) -> MaintenanceAccessResolver:
    return request.app.state.maintenance_resolver


def get_client_ip_resolver(request: Request) -> TrustedProxyClientIpResolver:
    return request.app.state.client_ip_resolver


# Service Dependency Type Aliases
ConfigDep = Annotated[StorefrontConfig, Depends(get_config)]
HttpClientDep = Annotated[AsyncClient, Depends(get_http_client)]
MaintenanceResolverDep = Annotated[MaintenanceAccessResolver, Depends(get_maintenance_resolver)]
ClientIpResolverDep = Annotated[TrustedProxyClientIpResolver, Depends(get_client_ip_resolver)]


# ==========================================
# 2. Logic Dependencies
# ==========================================


def get_inbound_request(request: Request) -> InboundRequest:
    """
    InboundRequest classified by the maintenance middleware.

    Built on demand when the middleware did not run for this request.
    """
    inbound = getattr(request.state, "inbound_request", None)
    if inbound is None:
        inbound = request.app.state.request_builder.build(request)
        request.state.inbound_request = inbound
    return inbound


# Logic Dependency Type Aliases
InboundRequestDep = Annotated[InboundRequest, Depends(get_inbound_request)]
