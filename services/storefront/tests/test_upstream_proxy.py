import httpx
import pytest
import respx

from services.common.core.request_context import clear_request_id, set_request_id
from services.storefront.core.exceptions import UpstreamTimeoutError, UpstreamUnavailableError
from services.storefront.core.proxy import (
    build_upstream_headers,
    build_upstream_url,
    proxy_to_upstream,
    to_response,
)

UPSTREAM = "http://upstream.test"


@pytest.fixture(autouse=True)
def reset_request_id():
    clear_request_id()
    yield
    clear_request_id()


def test_build_upstream_url_keeps_query(make_request):
    request = make_request("/detail/1", query_string="color=red&size=m")
    assert build_upstream_url(UPSTREAM + "/", request) == f"{UPSTREAM}/detail/1?color=red&size=m"


def test_build_upstream_headers(make_request):
    set_request_id("req-123")
    request = make_request(
        "/",
        headers={
            "Connection": "keep-alive",
            "Content-Length": "0",
            "X-Forwarded-For": "203.0.113.7",
            "X-Forwarded-Proto": "https",
            "Cookie": "session=abc",
            "X-Client-Ip": "10.0.0.1",
        },
        client=("172.17.1.12", 50000),
    )

    headers = build_upstream_headers(request, "203.0.113.7", trusted_peer=True)
    names = [name.lower() for name, _ in headers]
    values = dict((name.lower(), value) for name, value in headers)

    assert "connection" not in names
    assert "content-length" not in names
    assert names.count("x-forwarded-proto") == 1
    assert values["x-forwarded-for"] == "203.0.113.7, 172.17.1.12"
    assert values["x-forwarded-host"] == "shop.example.com"
    assert values["x-forwarded-proto"] == "http"
    assert values["x-client-ip"] == "203.0.113.7"
    assert names.count("x-client-ip") == 1
    assert values["x-request-id"] == "req-123"
    assert values["cookie"] == "session=abc"


def test_forwarded_chain_from_untrusted_peer_is_dropped(make_request):
    request = make_request(
        headers={"X-Forwarded-For": "192.168.2.16, 10.0.0.1"}, client=("203.0.113.9", 50000)
    )

    headers = build_upstream_headers(request, "203.0.113.9")

    assert [value for name, value in headers if name.lower() == "x-forwarded-for"] == [
        "203.0.113.9"
    ]


def test_request_id_from_context_replaces_incoming_header(make_request):
    set_request_id("req-123")
    request = make_request(headers={"X-Request-Id": "from-client"})

    headers = build_upstream_headers(request, None)

    assert [value for name, value in headers if name.lower() == "x-request-id"] == ["req-123"]
    assert "x-client-ip" not in [name.lower() for name, _ in headers]


@pytest.mark.asyncio
@respx.mock
async def test_proxy_to_upstream_forwards_method_and_body(make_request):
    route = respx.post(f"{UPSTREAM}/checkout/cart").mock(
        return_value=httpx.Response(201, text="created")
    )
    request = make_request("/checkout/cart", method="POST", body=b"qty=2")

    async with httpx.AsyncClient() as client:
        response = await proxy_to_upstream(request, client, UPSTREAM, client_ip="192.168.1.16")

    assert response.status_code == 201
    assert route.called
    sent = route.calls.last.request
    assert sent.content == b"qty=2"
    assert sent.headers["x-client-ip"] == "192.168.1.16"


@pytest.mark.asyncio
@respx.mock
async def test_proxy_to_upstream_timeout(make_request):
    respx.get(f"{UPSTREAM}/").mock(side_effect=httpx.ReadTimeout("slow"))

    async with httpx.AsyncClient() as client:
        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await proxy_to_upstream(make_request("/"), client, UPSTREAM)

    assert exc_info.value.url == f"{UPSTREAM}/"
    assert isinstance(exc_info.value.cause, httpx.ReadTimeout)
    assert "timed out" in str(exc_info.value)


@pytest.mark.asyncio
@respx.mock
async def test_proxy_to_upstream_unreachable(make_request):
    respx.get(f"{UPSTREAM}/").mock(side_effect=httpx.ConnectError("refused"))

    async with httpx.AsyncClient() as client:
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await proxy_to_upstream(make_request("/"), client, UPSTREAM)

    assert not isinstance(exc_info.value, UpstreamTimeoutError)
    assert "refused" in str(exc_info.value)


def test_to_response_preserves_repeated_headers():
    upstream_response = httpx.Response(
        200,
        content=b"hello",
        headers=[
            ("Set-Cookie", "a=1"),
            ("Set-Cookie", "b=2"),
            ("Content-Type", "text/plain"),
            ("Transfer-Encoding", "chunked"),
        ],
    )

    response = to_response(upstream_response)

    assert response.status_code == 200
    assert response.body == b"hello"
    assert response.headers.getlist("set-cookie") == ["a=1", "b=2"]
    assert "transfer-encoding" not in response.headers
    assert response.headers["content-length"] == "5"
