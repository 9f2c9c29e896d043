"""
Client IP resolution.

Forwarding headers are only honored when the immediate peer is a trusted
proxy. Otherwise the peer address is the client address, so a spoofed
X-Forwarded-For from an untrusted peer has no effect.
"""

import ipaddress
import logging
from typing import Iterable, List, Mapping, Optional, Protocol

from starlette.requests import Request

from .ip_allowlist import IPAddress, IPNetwork, parse_ip

logger = logging.getLogger("storefront.client_ip")

HEADER_FORWARDED = "forwarded"
HEADER_X_FORWARDED_FOR = "x-forwarded-for"
SUPPORTED_HEADERS = (HEADER_FORWARDED, HEADER_X_FORWARDED_FOR)


class ClientIpResolver(Protocol):
    def resolve(self, request: Request) -> Optional[str]: ...


def parse_ip_networks(entries: Iterable[str]) -> List[IPNetwork]:
    networks: List[IPNetwork] = []
    for entry in entries:
        item = entry.strip()
        if not item:
            continue
        try:
            networks.append(ipaddress.ip_network(item, strict=False))
        except ValueError:
            logger.warning("Ignoring invalid trusted proxy entry: %s", item)
    return networks


def _strip_port(node: str) -> str:
    """
    Remove quotes, IPv6 brackets and ports from a forwarded node.

    '"[2001:db8::17]:4711"' -> '2001:db8::17', '192.0.2.43:80' -> '192.0.2.43'
    """
    node = node.strip().strip('"').strip()
    if node.startswith("["):
        end = node.find("]")
        return node[1:end] if end != -1 else node[1:]
    if node.count(":") == 1:
        return node.split(":", 1)[0]
    return node


def parse_forwarded_for(value: str) -> List[str]:
    """
    Extract the for= nodes of an RFC 7239 Forwarded header, in order.
    """
    nodes: List[str] = []
    for element in value.split(","):
        for pair in element.split(";"):
            key, sep, raw = pair.partition("=")
            if sep and key.strip().lower() == "for":
                nodes.append(_strip_port(raw))
    return nodes


def parse_x_forwarded_for(value: str) -> List[str]:
    return [_strip_port(hop) for hop in value.split(",") if hop.strip()]


class TrustedProxyClientIpResolver:
    """
    Resolve the client address behind a chain of trusted proxies.
    """

    def __init__(
        self,
        trusted_proxies: Iterable[str] = (),
        trusted_headers: Iterable[str] = SUPPORTED_HEADERS,
    ):
        self.trusted_networks = parse_ip_networks(trusted_proxies)
        self.trusted_headers: List[str] = []
        for header in trusted_headers:
            name = header.strip().lower()
            if name in SUPPORTED_HEADERS:
                self.trusted_headers.append(name)
            else:
                logger.warning("Ignoring unsupported forwarding header: %s", header)

    def is_trusted_proxy(self, address: Optional[IPAddress]) -> bool:
        if address is None:
            return False
        return any(address in network for network in self.trusted_networks)

    def is_trusted_peer(self, request: Request) -> bool:
        """Whether the immediate peer of the request is a trusted proxy."""
        peer = request.client.host if request.client else None
        return self.is_trusted_proxy(parse_ip(peer))

    def forwarded_chain(self, headers: Mapping[str, str]) -> List[IPAddress]:
        """
        Client-to-proxy chain from the first trusted header present.

        Obfuscated identifiers ("unknown", "_hidden") are skipped.
        """
        for name in self.trusted_headers:
            value = headers.get(name)
            if not value:
                continue
            if name == HEADER_FORWARDED:
                nodes = parse_forwarded_for(value)
            else:
                nodes = parse_x_forwarded_for(value)
            chain = [ip for ip in (parse_ip(node) for node in nodes) if ip is not None]
            if chain:
                return chain
        return []

    def resolve(self, request: Request) -> Optional[str]:
        peer = request.client.host if request.client else None
        if not peer:
            return None

        peer_ip = parse_ip(peer)
        if not self.is_trusted_proxy(peer_ip):
            return peer

        chain = self.forwarded_chain(request.headers)
        if not chain:
            return peer

        chain.append(peer_ip)
        for hop in reversed(chain):
            if not self.is_trusted_proxy(hop):
                return hop.compressed

        return chain[0].compressed
