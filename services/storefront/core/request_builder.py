"""
Inbound request builder.

Translates a FastAPI/Starlette request into the typed InboundRequest the
maintenance resolver consumes. All header parsing and configuration lookups
happen here, never in the resolver.
"""

from starlette.requests import Request

from ..models.inbound_request import InboundRequest
from ..services.route_matcher import RouteMatcher
from ..services.sales_channel_registry import SalesChannelRegistry
from .client_ip import ClientIpResolver

XML_HTTP_REQUEST = "XMLHttpRequest"


def is_xml_http_request(request: Request) -> bool:
    return request.headers.get("X-Requested-With") == XML_HTTP_REQUEST


class InboundRequestBuilder:
    def __init__(
        self,
        sales_channel_registry: SalesChannelRegistry,
        route_matcher: RouteMatcher,
        client_ip_resolver: ClientIpResolver,
    ):
        self.sales_channel_registry = sales_channel_registry
        self.route_matcher = route_matcher
        self.client_ip_resolver = client_ip_resolver

    def build(self, request: Request) -> InboundRequest:
        path = request.url.path
        resolved = self.sales_channel_registry.resolve(request.headers.get("host"), path)

        if resolved is None:
            route = self.route_matcher.match_route(path, request.method)
            return InboundRequest(
                is_sales_channel_request=False,
                is_allowed_in_maintenance=bool(route and route.allow_in_maintenance),
                is_xml_http_request=is_xml_http_request(request),
                client_ip=self.client_ip_resolver.resolve(request),
                route_name=route.name if route else None,
            )

        channel = resolved.sales_channel
        route = self.route_matcher.match_route(resolved.relative_path(path), request.method)
        return InboundRequest(
            is_sales_channel_request=True,
            is_maintenance_active=channel.maintenance,
            allowed_ip_addresses=channel.maintenance_ip_allowlist,
            is_allowed_in_maintenance=bool(route and route.allow_in_maintenance),
            is_xml_http_request=is_xml_http_request(request),
            client_ip=self.client_ip_resolver.resolve(request),
            sales_channel_id=channel.id,
            route_name=route.name if route else None,
            base_path=resolved.base_path,
        )
