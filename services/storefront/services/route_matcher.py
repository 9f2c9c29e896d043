"""
Route matching service.

Loads routing.yml and resolves route names and maintenance flags from
request paths/methods.

Note:
    Provides functionality different from FastAPI's APIRouter.
    The gateway forwards everything to the upstream storefront; this table
    only tells it which storefront routes stay reachable during maintenance.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Pattern

import yaml

from ..config import config
from ..models.route import MatchedRoute

logger = logging.getLogger("storefront.route_matcher")

MAINTENANCE_ROUTE_NAME = "frontend.maintenance.page"
ERROR_ROUTE_NAME = "frontend.error"
HEALTH_ROUTE_NAME = "gateway.health"


def path_to_regex(path_pattern: str) -> str:
    """
    Convert a path pattern to a regular expression.

    Example: "/detail/{product_id}"  → "^/detail/(?P<product_id>[^/]+)$"
             "/theme/{asset:path}"   → "^/theme/(?P<asset>.+)$"
    """
    regex_pattern = re.sub(r"\{(\w+):path\}", r"(?P<\1>.+)", path_pattern)
    regex_pattern = re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", regex_pattern)
    return f"^{regex_pattern}$"


class _CompiledRoute:
    def __init__(self, route: Dict[str, Any]):
        self.name: str = str(route.get("name") or route.get("path", ""))
        self.path: str = str(route.get("path", ""))
        methods = route.get("methods") or route.get("method") or []
        if isinstance(methods, str):
            methods = [methods]
        self.methods = {str(m).upper() for m in methods}
        self.allow_in_maintenance = bool(route.get("allow_in_maintenance", False))
        self.regex: Pattern[str] = re.compile(path_to_regex(self.path))

    def match(self, path: str, method: str) -> Optional[MatchedRoute]:
        if self.methods and method.upper() not in self.methods:
            return None
        match = self.regex.match(path)
        if not match:
            return None
        return MatchedRoute(
            name=self.name,
            route_path=self.path,
            path_params=match.groupdict(),
            allow_in_maintenance=self.allow_in_maintenance,
        )


class RouteMatcher:
    def __init__(
        self,
        config_path: Optional[str] = None,
        maintenance_page_path: Optional[str] = None,
        error_page_path: Optional[str] = None,
    ):
        """
        Args:
            config_path: routing.yml path (defaults to ROUTING_CONFIG_PATH)
            maintenance_page_path: defaults to MAINTENANCE_PAGE_PATH
            error_page_path: defaults to ERROR_PAGE_PATH
        """
        self.config_path = config_path or config.ROUTING_CONFIG_PATH
        self.maintenance_page_path = maintenance_page_path or config.MAINTENANCE_PAGE_PATH
        self.error_page_path = error_page_path or config.ERROR_PAGE_PATH
        self._builtin_routes = [
            _CompiledRoute(route)
            for route in (
                {
                    "name": MAINTENANCE_ROUTE_NAME,
                    "path": self.maintenance_page_path,
                    "allow_in_maintenance": True,
                },
                {
                    "name": ERROR_ROUTE_NAME,
                    "path": self.error_page_path,
                    "allow_in_maintenance": True,
                },
                {"name": HEALTH_ROUTE_NAME, "path": "/health", "allow_in_maintenance": True},
            )
        ]
        self._routes: List[_CompiledRoute] = []
        self._loaded = False

    def load_routing_config(self, force: bool = False) -> List[Dict[str, Any]]:
        """
        Load routing.yml and cache it.

        A failed reload keeps the previously loaded routes.
        """
        if self._loaded and not force:
            return [self._describe(route) for route in self._routes]

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                cfg = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"Warning: Routing config not found at {self.config_path}")
            if not self._loaded:
                self._routes, self._loaded = [], True
            return [self._describe(route) for route in self._routes]
        except yaml.YAMLError as e:
            logger.error(f"Error parsing routing config: {e}")
            if not self._loaded:
                self._routes, self._loaded = [], True
            return [self._describe(route) for route in self._routes]

        entries = (cfg.get("routes") or []) if isinstance(cfg, dict) else None
        if not isinstance(entries, list):
            logger.error(
                f"Invalid routing config in {self.config_path}: expected a 'routes' list"
            )
            if not self._loaded:
                self._routes, self._loaded = [], True
            return [self._describe(route) for route in self._routes]

        routes: List[_CompiledRoute] = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("path"):
                logger.warning(f"Skipping route without path: {entry!r}")
                continue
            try:
                routes.append(_CompiledRoute(entry))
            except (re.error, TypeError) as e:
                logger.error(f"Skipping route {entry.get('path')}: invalid definition ({e})")

        self._routes, self._loaded = routes, True
        logger.info(f"Loaded {len(routes)} routes from {self.config_path}")
        return [self._describe(route) for route in routes]

    @staticmethod
    def _describe(route: _CompiledRoute) -> Dict[str, Any]:
        return {
            "name": route.name,
            "path": route.path,
            "methods": sorted(route.methods),
            "allow_in_maintenance": route.allow_in_maintenance,
        }

    def match_route(self, request_path: str, request_method: str) -> Optional[MatchedRoute]:
        """
        Resolve the route for a path relative to the sales channel base path.

        Built-in routes (maintenance page, error page, health) take precedence
        over routing.yml.

        Args:
            request_path: request path (e.g., "/detail/123")
            request_method: HTTP method (e.g., "GET")

        Returns:
            MatchedRoute, or None when no route matches
        """
        if not self._loaded:
            self.load_routing_config()

        for route in self._builtin_routes + self._routes:
            matched = route.match(request_path, request_method)
            if matched is not None:
                return matched

        return None
