import os
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from starlette.requests import Request

# Config is initialized on import, so set the environment at the top level.
os.environ["CONFIG_RELOAD_ENABLED"] = "false"
os.environ["LOG_CONFIG_PATH"] = "/nonexistent/storefront_log.yaml"

from services.storefront.config import StorefrontConfig  # noqa: E402
from services.storefront.main import create_app  # noqa: E402

PROXY_IP = "172.17.1.12"
CLIENT_IP = "192.168.1.16"
UPSTREAM_URL = "http://upstream.test"

SALES_CHANNELS_YAML = """
defaults:
  maintenance_ip_allowlist: []

sales_channels:
  live:
    name: "Live Shop"
    domains:
      - "http://shop.example.com"
    maintenance: false

  closed:
    name: "Closed <Shop>"
    domains:
      - "http://closed.example.com"
    maintenance: true
    maintenance_ip_allowlist:
      - "192.168.2.16"
      - "2003:F0:3f08:Db00:6D4:c4Ff:Fe48:74F4"

  multi-de:
    name: "Multi DE"
    domains:
      - "http://multi.example.com"
    maintenance: false

  multi-en:
    name: "Multi EN"
    domains:
      - "http://multi.example.com/en"
    maintenance: true
    maintenance_ip_allowlist: '["10.0.0.0/8"]'
"""

ROUTING_YAML = """
routes:
  - name: frontend.home.page
    path: /
    methods: [GET]
  - name: frontend.detail.page
    path: /detail/{product_id}
    methods: [GET]
  - name: frontend.theme.assets
    path: /theme/{asset:path}
    allow_in_maintenance: true
"""


def _build_request(
    path: str = "/",
    method: str = "GET",
    host: str = "shop.example.com",
    headers: Optional[Dict[str, str]] = None,
    client: Optional[Tuple[str, int]] = (CLIENT_IP, 50000),
    query_string: str = "",
    body: bytes = b"",
    scheme: str = "http",
) -> Request:
    raw_headers = [(b"host", host.encode("latin-1"))]
    for key, value in (headers or {}).items():
        raw_headers.append((key.lower().encode("latin-1"), value.encode("latin-1")))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "root_path": "",
        "query_string": query_string.encode("latin-1"),
        "headers": raw_headers,
        "client": client,
        "server": (host, 443 if scheme == "https" else 80),
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


@pytest.fixture
def make_request():
    """Starlette request built from a raw ASGI scope."""
    return _build_request


@pytest.fixture
def make_proxied_request():
    """Request arriving through the trusted proxy with an RFC 7239 Forwarded header."""

    def _make(client_ip: str = CLIENT_IP, **kwargs) -> Request:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Forwarded"] = f"by={PROXY_IP};for={client_ip}"
        return _build_request(headers=headers, client=(PROXY_IP, 50000), **kwargs)

    return _make


class FakeUpstream:
    """Records forwarded requests and answers with a canned response."""

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.response = httpx.Response(
            200, text="<html>storefront</html>", headers={"content-type": "text/html"}
        )
        self.error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def config_files(tmp_path):
    sales_channels = tmp_path / "sales_channels.yml"
    sales_channels.write_text(SALES_CHANNELS_YAML, encoding="utf-8")
    routing = tmp_path / "routing.yml"
    routing.write_text(ROUTING_YAML, encoding="utf-8")
    return {"sales_channels": sales_channels, "routing": routing}


@pytest.fixture
def storefront_config(config_files):
    return StorefrontConfig(
        _env_file=None,
        UPSTREAM_URL=UPSTREAM_URL,
        SALES_CHANNELS_CONFIG_PATH=str(config_files["sales_channels"]),
        ROUTING_CONFIG_PATH=str(config_files["routing"]),
        TRUSTED_PROXIES=PROXY_IP,
        CONFIG_RELOAD_ENABLED=False,
        MAINTENANCE_RETRY_AFTER=120,
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest_asyncio.fixture
async def main_app(storefront_config, upstream):
    app = create_app(storefront_config)
    async with app.router.lifespan_context(app):
        lifespan_client = app.state.http_client
        app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
        try:
            yield app
        finally:
            await app.state.http_client.aclose()
            app.state.http_client = lifespan_client


@pytest.fixture
def make_client(main_app):
    """httpx client bound to the app, connecting from the given peer address."""

    def _make(peer_ip: str = CLIENT_IP, host: str = "shop.example.com") -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=main_app, client=(peer_ip, 50000))
        return httpx.AsyncClient(transport=transport, base_url=f"http://{host}")

    return _make
