import logging
from functools import partial
from typing import AsyncIterator, Iterable, Optional, Tuple
from urllib.parse import urlsplit

import httpx
from opentelemetry import trace
from starlette.requests import Request

from cors_proxy import vars as config
from cors_proxy.models import HeaderList, ProxyRequest, ProxyResponse
from cors_proxy.proxy.errors import InvalidRequest, TransformError, UpstreamError
from cors_proxy.proxy.html_rewriter import rewrite
from cors_proxy.utils import mask_url
from cors_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Set by httpx for the outbound request
REQUEST_HEADERS_SET_BY_CLIENT = {"host", "content-length", "accept-encoding"}

# The proxy's own CORS policy is authoritative
CORS_HEADERS = {"access-control-allow-origin", "access-control-allow-headers"}

# No longer valid once the HTML body has been decoded and rewritten
REWRITTEN_BODY_HEADERS = {"content-encoding", "content-length"}

ALLOWED_SCHEMES = {"http", "https"}


def validate_target_url(url: Optional[str]) -> str:
    """Check that the target is an absolute http(s) URL with a host."""
    if not url:
        raise InvalidRequest("Missing URL parameter")
    try:
        parts = urlsplit(url)
        valid = parts.scheme.lower() in ALLOWED_SCHEMES and bool(parts.hostname)
        if valid:
            httpx.URL(url)
    except (ValueError, httpx.InvalidURL):
        valid = False
    if not valid:
        raise InvalidRequest("Invalid URL parameter")
    return url


def prepare_headers(request: Request) -> HeaderList:
    """
    Prepare headers for forwarding to the target server.
    Removes hop-by-hop headers and the ones httpx computes for the new request.
    Values stay raw bytes: clients do send non-ASCII values.
    """
    headers = []
    for name, value in request.headers.raw:
        name_lower = name.decode("latin-1").lower()
        if name_lower in HOP_BY_HOP_HEADERS or name_lower in REQUEST_HEADERS_SET_BY_CLIENT:
            continue
        headers.append((name, value))
    return headers


def filter_response_headers(
    headers: Iterable[Tuple[bytes, bytes]], drop: Iterable[str] = ()
) -> HeaderList:
    """
    Copy raw upstream headers except CORS and hop-by-hop ones (case-insensitive).
    Names are lower-cased for ASGI, values are passed through untouched.
    """
    excluded = CORS_HEADERS | HOP_BY_HOP_HEADERS | {name.lower() for name in drop}
    result = []
    for name, value in headers:
        name_lower = name.lower()
        if name_lower.decode("latin-1") in excluded:
            continue
        result.append((name_lower, value))
    return result


def is_html(content_type: Optional[str]) -> bool:
    return bool(content_type) and "text/html" in content_type.lower()


def with_utf8_charset(content_type: str) -> str:
    """Replace (or add) the charset parameter of a content type with utf-8."""
    params = [p.strip() for p in content_type.split(";")]
    kept = [p for p in params[1:] if p and not p.lower().startswith("charset=")]
    return "; ".join([params[0], *kept, "charset=utf-8"])


def set_header(headers: HeaderList, name: bytes, value: bytes) -> HeaderList:
    name_lower = name.lower()
    result = [(k, v) for k, v in headers if k.lower() != name_lower]
    result.append((name, value))
    return result


def create_upstream_client() -> httpx.AsyncClient:
    """Client used for a single forwarded request."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.PROXY_TIMEOUT),
        follow_redirects=True,
    )


async def relay_stream(
    response: httpx.Response, client: httpx.AsyncClient
) -> AsyncIterator[bytes]:
    """
    Relay the upstream body chunk by chunk, exactly as received.
    Closing the generator (client gone) closes the outbound connection too.
    """
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        log_exception_with_details(
            logger, f"[Proxy] Upstream stream from {mask_url(str(response.url))} broke", e
        )
        raise
    finally:
        await response.aclose()
        await client.aclose()


async def _close(response: Optional[httpx.Response], client: httpx.AsyncClient):
    if response is not None:
        await response.aclose()
    await client.aclose()


async def _rewrite_html(
    response: httpx.Response, client: httpx.AsyncClient, target_url: str, span
) -> ProxyResponse:
    try:
        await response.aread()
    except httpx.HTTPError as e:
        log_exception_with_details(logger, f"[Proxy] Reading HTML from {mask_url(target_url)} failed", e)
        span.set_attribute("proxy.error", format_exception_message(e))
        raise UpstreamError(format_exception_message(e)) from e
    finally:
        await _close(response, client)

    headers = filter_response_headers(response.headers.raw, drop=REWRITTEN_BODY_HEADERS)
    try:
        rewritten = rewrite(response.text, target_url)
    except TransformError as e:
        log_exception_with_details(
            logger, f"[Proxy] Passing {mask_url(target_url)} through unmodified", e, logging.WARNING
        )
        span.set_attribute("proxy.rewritten", False)
        return ProxyResponse(
            status_code=response.status_code,
            headers=headers,
            body=response.content,
        )

    span.set_attribute("proxy.rewritten", True)
    # Same encoding httpx decoded the header with, so the round trip is exact
    content_type = with_utf8_charset(response.headers.get("content-type", ""))
    return ProxyResponse(
        status_code=response.status_code,
        headers=set_header(
            headers, b"content-type", content_type.encode(response.headers.encoding)
        ),
        body=rewritten.encode("utf-8"),
    )


async def forward(proxy_request: ProxyRequest) -> ProxyResponse:
    """
    Issue one outbound request reproducing the inbound method and body.

    HTML responses are buffered and their links rewritten; every other body is
    relayed as it arrives. Nothing is retried.
    """
    target_url = validate_target_url(proxy_request.target_url)

    with tracer.start_as_current_span("proxy_request") as span:
        span.set_attribute("proxy.target_url", mask_url(target_url))
        span.set_attribute("proxy.method", proxy_request.method)

        logger.debug(f"[Proxy] {proxy_request.method} -> {mask_url(target_url)}")

        client = create_upstream_client()
        response = None
        try:
            upstream_request = client.build_request(
                method=proxy_request.method,
                url=target_url,
                headers=proxy_request.headers,
                content=proxy_request.body or None,
            )
            response = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            await _close(response, client)
            log_exception_with_details(logger, f"[Proxy] Request to {mask_url(target_url)} failed", e)
            span.set_attribute("proxy.error", format_exception_message(e))
            raise UpstreamError(format_exception_message(e)) from e

        span.set_attribute("proxy.status_code", response.status_code)

        if response.is_error:
            await _close(response, client)
            message = f"Request failed with status code {response.status_code}"
            logger.warning(f"[Proxy] {mask_url(target_url)}: {message}")
            span.set_attribute("proxy.error", message)
            raise UpstreamError(message, status_code=response.status_code)

        content_type = response.headers.get("content-type", "")
        if (
            config.REWRITE_HTML_URLS
            and is_html(content_type)
            and proxy_request.method.upper() != "HEAD"
        ):
            return await _rewrite_html(response, client, target_url, span)

        span.set_attribute("proxy.rewritten", False)
        return ProxyResponse(
            status_code=response.status_code,
            headers=filter_response_headers(response.headers.raw),
            body=relay_stream(response, client),
            closer=partial(_close, response, client),
        )
