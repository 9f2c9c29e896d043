"""
Sales channel registry.

Loads sales_channels.yml and resolves request host/path to a sales channel.
Merges default maintenance allow-list entries into channel-specific settings.
"""

import logging
import os
import string
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import yaml
from pydantic import ValidationError

from ..config import config
from ..core.ip_allowlist import parse_allowed_ip_addresses
from ..models.sales_channel import ResolvedSalesChannel, SalesChannel

logger = logging.getLogger("storefront.sales_channel_registry")


def split_domain(domain: str) -> Tuple[Optional[str], str]:
    """
    Split a configured domain into (host, base_path).

    "https://Shop.Example.com/de/" -> ("shop.example.com", "/de")
    "shop.example.com:8443"        -> ("shop.example.com", "")
    """
    raw = domain.strip()
    if "://" not in raw:
        raw = f"//{raw}"
    parts = urlsplit(raw)
    return parts.hostname, parts.path.rstrip("/")


def normalize_host(host: Optional[str]) -> Optional[str]:
    """Lowercase a Host header value and strip its port."""
    if not host:
        return None
    return urlsplit(f"//{host.strip()}").hostname


class SalesChannelRegistry:
    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or config.SALES_CHANNELS_CONFIG_PATH
        self._channels: Dict[str, SalesChannel] = {}
        self._domains: List[Tuple[str, str, SalesChannel]] = []
        self._loaded = False

    def load_sales_channels_config(self, force: bool = False) -> Dict[str, SalesChannel]:
        """
        Load and cache sales_channels.yml.

        A failed reload keeps the previously loaded channels.

        Returns:
            Dict of sales channel id -> SalesChannel
        """
        if self._loaded and not force:
            return self._channels

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                # Substitute environment variables using string.Template.
                template = string.Template(f.read())
                content = template.safe_substitute(os.environ)
                cfg = yaml.safe_load(content) or {}
        except FileNotFoundError:
            logger.warning(f"Sales channel config not found at {self.config_path}")
            if not self._loaded:
                self._replace({})
            return self._channels
        except yaml.YAMLError as e:
            logger.error(f"Error parsing sales channel config: {e}")
            if not self._loaded:
                self._replace({})
            return self._channels

        if not isinstance(cfg, dict) or not isinstance(cfg.get("sales_channels") or {}, dict):
            logger.error(
                f"Invalid sales channel config in {self.config_path}: "
                "expected a mapping with a 'sales_channels' mapping"
            )
            if not self._loaded:
                self._replace({})
            return self._channels

        self._replace(self._build_channels(cfg))
        logger.info(f"Loaded {len(self._channels)} sales channels from {self.config_path}")
        return self._channels

    def _build_channels(self, cfg: Dict[str, Any]) -> Dict[str, SalesChannel]:
        defaults = cfg.get("defaults") or {}
        if not isinstance(defaults, dict):
            logger.warning(f"Ignoring sales channel defaults of type {type(defaults).__name__}")
            defaults = {}
        default_allowlist = parse_allowed_ip_addresses(defaults.get("maintenance_ip_allowlist"))

        channels: Dict[str, SalesChannel] = {}
        for channel_id, entry in (cfg.get("sales_channels") or {}).items():
            if entry is None:
                entry = {}
            elif not isinstance(entry, dict):
                logger.error(
                    f"Skipping sales channel '{channel_id}': expected a mapping, "
                    f"got {type(entry).__name__}",
                    extra={"sales_channel_id": str(channel_id)},
                )
                continue
            entry = dict(entry)
            entry["id"] = str(channel_id)
            try:
                channel = SalesChannel.model_validate(entry)
            except ValidationError as e:
                logger.error(
                    f"Skipping invalid sales channel '{channel_id}': {e}",
                    extra={"sales_channel_id": str(channel_id)},
                )
                continue

            if default_allowlist:
                channel = channel.model_copy(
                    update={
                        "maintenance_ip_allowlist": default_allowlist
                        | channel.maintenance_ip_allowlist
                    }
                )
            channels[channel.id] = channel

        return channels

    def _replace(self, channels: Dict[str, SalesChannel]) -> None:
        domains: List[Tuple[str, str, SalesChannel]] = []
        for channel in channels.values():
            for domain in channel.domains:
                host, base_path = split_domain(domain)
                if not host:
                    logger.warning(
                        f"Ignoring domain without host '{domain}' of sales channel {channel.id}"
                    )
                    continue
                domains.append((host, base_path, channel))

        # Longest base path first, so the most specific domain wins.
        domains.sort(key=lambda item: len(item[1]), reverse=True)

        self._channels = channels
        self._domains = domains
        self._loaded = True

    def get_sales_channel(self, sales_channel_id: str) -> Optional[SalesChannel]:
        return self._channels.get(sales_channel_id)

    def resolve(self, host: Optional[str], path: str) -> Optional[ResolvedSalesChannel]:
        """
        Resolve the sales channel serving a request.

        Args:
            host: Host header value (port allowed)
            path: request path

        Returns:
            ResolvedSalesChannel, or None when no domain matches
        """
        if not self._loaded:
            self.load_sales_channels_config()

        request_host = normalize_host(host)
        if not request_host:
            return None

        for domain_host, base_path, channel in self._domains:
            if domain_host != request_host:
                continue
            if not base_path or path == base_path or path.startswith(base_path + "/"):
                return ResolvedSalesChannel(sales_channel=channel, base_path=base_path)

        return None
