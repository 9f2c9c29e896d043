"""
Upstream proxy module.

Forwards requests that passed the maintenance check to the upstream
storefront and converts the upstream response back into a FastAPI response.
"""

import logging
from typing import List, Optional, Tuple

import httpx
from fastapi import Request, Response

from services.common.core.request_context import get_request_id

from .exceptions import UpstreamTimeoutError, UpstreamUnavailableError

logger = logging.getLogger("storefront.proxy")

# Connection-level headers (RFC 9110 7.6.1) are never forwarded.
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
}

# httpx decodes the body, so length and encoding are recomputed.
_RESPONSE_EXCLUDED_HEADERS = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}
_REQUEST_EXCLUDED_HEADERS = HOP_BY_HOP_HEADERS | {
    "content-length",
    "x-client-ip",
    "x-forwarded-for",
    "x-forwarded-host",
    "x-forwarded-proto",
    "x-request-id",
}


def build_upstream_url(upstream_url: str, request: Request) -> str:
    url = f"{upstream_url.rstrip('/')}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def build_upstream_headers(
    request: Request, client_ip: Optional[str], trusted_peer: bool = False
) -> List[Tuple[str, str]]:
    """
    Copy end-to-end request headers and append forwarding information.

    An incoming X-Forwarded-For chain is only extended when the peer is a
    trusted proxy; otherwise it starts over at the peer.
    """
    headers = [
        (key, value)
        for key, value in request.headers.items()
        if key.lower() not in _REQUEST_EXCLUDED_HEADERS
    ]

    peer = request.client.host if request.client else None
    forwarded_for = request.headers.get("x-forwarded-for") if trusted_peer else None
    if peer:
        forwarded_for = f"{forwarded_for}, {peer}" if forwarded_for else peer
    if forwarded_for:
        headers.append(("X-Forwarded-For", forwarded_for))

    host = request.headers.get("host")
    if host:
        headers.append(("X-Forwarded-Host", host))
    headers.append(("X-Forwarded-Proto", request.url.scheme))

    if client_ip:
        headers.append(("X-Client-Ip", client_ip))

    request_id = get_request_id() or request.headers.get("x-request-id")
    if request_id:
        headers.append(("X-Request-Id", request_id))

    return headers


async def proxy_to_upstream(
    request: Request,
    client: httpx.AsyncClient,
    upstream_url: str,
    client_ip: Optional[str] = None,
    timeout: Optional[float] = None,
    trusted_peer: bool = False,
) -> httpx.Response:
    """
    Forward the request to the upstream storefront.

    Raises:
        UpstreamTimeoutError: the upstream did not answer in time
        UpstreamUnavailableError: the upstream could not be reached
    """
    url = build_upstream_url(upstream_url, request)
    body = await request.body()

    try:
        return await client.request(
            request.method,
            url,
            content=body,
            headers=build_upstream_headers(request, client_ip, trusted_peer),
            timeout=timeout,
        )
    except httpx.TimeoutException as e:
        logger.error(
            f"Upstream request timed out: {request.method} {url}",
            extra={"upstream_url": url, "error_type": type(e).__name__},
        )
        raise UpstreamTimeoutError(url, e) from e
    except httpx.RequestError as e:
        logger.error(
            f"Upstream request failed: {request.method} {url}",
            extra={"upstream_url": url, "error_type": type(e).__name__, "error_detail": str(e)},
        )
        raise UpstreamUnavailableError(url, e) from e


def to_response(upstream_response: httpx.Response) -> Response:
    """
    Convert an upstream httpx response into a FastAPI response.

    Repeated headers such as Set-Cookie are preserved.
    """
    response = Response(content=upstream_response.content, status_code=upstream_response.status_code)
    for key, value in upstream_response.headers.multi_items():
        if key.lower() in _RESPONSE_EXCLUDED_HEADERS:
            continue
        response.headers.append(key, value)
    return response
