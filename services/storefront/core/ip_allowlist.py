"""
IP allow-list matching.

Allow-list entries and client addresses are compared in canonical form, so
letter case and IPv6 compression never affect the result. Entries may be
single addresses or CIDR networks.
"""

import ipaddress
import json
import logging
from functools import lru_cache
from typing import Any, FrozenSet, Iterable, List, Optional, Union

logger = logging.getLogger("storefront.ip_allowlist")

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def parse_ip(value: Optional[str]) -> Optional[IPAddress]:
    """
    Parse an address, tolerating surrounding whitespace and IPv6 brackets.

    Returns None for anything that is not an IP address.
    """
    if not value:
        return None
    candidate = value.strip()
    if candidate.startswith("[") and candidate.endswith("]"):
        candidate = candidate[1:-1]
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        return None


def normalize_ip(value: Optional[str]) -> Optional[str]:
    """
    Canonical textual form of an address.

    "2003:F0:3f08:Db00:6D4:c4Ff:Fe48:74F4" -> "2003:f0:3f08:db00:6d4:c4ff:fe48:74f4"
    Values that are not IP addresses are stripped and casefolded instead.
    """
    if value is None:
        return None
    parsed = parse_ip(value)
    if parsed is not None:
        return parsed.compressed
    return value.strip().casefold()


def parse_allowed_ip_addresses(raw: Any) -> FrozenSet[str]:
    """
    Decode an allow-list given as a JSON-encoded list or as an iterable.

    Malformed input yields an empty allow-list so that a broken
    configuration never grants maintenance bypass.
    """
    if raw is None:
        return frozenset()

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        if not raw.strip():
            return frozenset()
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed maintenance IP allow-list: %r", raw[:200])
            return frozenset()

    if isinstance(raw, dict) or not isinstance(raw, Iterable):
        logger.warning(
            "Ignoring maintenance IP allow-list of type %s", type(raw).__name__
        )
        return frozenset()

    return frozenset(
        entry.strip() for entry in raw if isinstance(entry, str) and entry.strip()
    )


class IpAllowList:
    """
    Set of addresses and networks exempt from maintenance redirection.
    """

    def __init__(self, entries: Iterable[str]):
        self._networks: List[IPNetwork] = []
        self._literals: set = set()

        for entry in entries:
            candidate = entry.strip()
            if candidate.startswith("[") and "]" in candidate:
                candidate = candidate[1:].replace("]", "", 1)
            try:
                self._networks.append(ipaddress.ip_network(candidate, strict=False))
            except ValueError:
                self._literals.add(entry.strip().casefold())

    def __len__(self) -> int:
        return len(self._networks) + len(self._literals)

    def __contains__(self, client_ip: Optional[str]) -> bool:
        return self.contains(client_ip)

    def contains(self, client_ip: Optional[str]) -> bool:
        if client_ip is None:
            return False

        address = parse_ip(client_ip)
        if address is None:
            return client_ip.strip().casefold() in self._literals

        candidates: List[IPAddress] = [address]
        mapped = getattr(address, "ipv4_mapped", None)
        if mapped is not None:
            candidates.append(mapped)

        # Membership across IP versions is simply False.
        return any(candidate in network for candidate in candidates for network in self._networks)


@lru_cache(maxsize=256)
def allow_list_for(entries: FrozenSet[str]) -> IpAllowList:
    """Cached IpAllowList per distinct allow-list."""
    return IpAllowList(entries)
