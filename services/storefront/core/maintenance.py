"""
Maintenance mode access resolver.

Decides, per request, whether a visitor must be sent to the maintenance page,
whether a visitor on the maintenance page must be sent back to the shop, and
whether the request's sales channel is in maintenance at all.
"""

from ..models.inbound_request import InboundRequest
from .ip_allowlist import allow_list_for


class MaintenanceAccessResolver:
    """
    Stateless classifier over InboundRequest.

    Holds no per-request state, so a single instance is shared by all
    concurrent requests.
    """

    def should_redirect(self, request: InboundRequest) -> bool:
        """
        True when the request must be redirected to the maintenance page.

        Background (XHR) requests, routes allowed during maintenance
        (maintenance page, error pages) and allow-listed clients are never
        redirected.
        """
        return (
            request.is_sales_channel_request
            and request.is_maintenance_active
            and not request.is_xml_http_request
            and not request.is_allowed_in_maintenance
            and not self.is_client_allowed(request)
        )

    def should_redirect_to_shop(self, request: InboundRequest) -> bool:
        """
        True when a visitor on the maintenance page should be sent back to the shop.

        That is the case when maintenance is not blocking this caller:
        maintenance is inactive, or the client is allow-listed.
        """
        if request.is_xml_http_request:
            return False
        return not request.is_maintenance_active or self.is_client_allowed(request)

    def is_maintenance_request(self, request: InboundRequest) -> bool:
        """
        Whether the request's sales channel currently has maintenance mode enabled.

        Allow-listed clients and allowed routes still count as in maintenance.
        """
        return request.is_sales_channel_request and request.is_maintenance_active

    def is_client_allowed(self, request: InboundRequest) -> bool:
        if not request.allowed_ip_addresses:
            return False
        return allow_list_for(request.allowed_ip_addresses).contains(request.client_ip)
