import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from opentelemetry import trace

from cors_proxy import vars as config
from cors_proxy.models import ProxyRequest, ProxyResponse
from cors_proxy.proxy import forwarder
from cors_proxy.proxy.errors import InvalidRequest, ProxyError
from cors_proxy.utils import client_address, mask_url
from cors_proxy.utils.traced_requests import traced_request

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def to_response(proxied: ProxyResponse) -> Response:
    """Build the downstream response, keeping repeated upstream headers as raw bytes."""
    if proxied.is_streaming:
        response = StreamingResponse(proxied.body, status_code=proxied.status_code)
        headers = proxied.headers
    else:
        response = Response(content=proxied.body, status_code=proxied.status_code)
        # Response already computed the length of the materialized body
        headers = [(name, value) for name, value in proxied.headers if name != b"content-length"]
    response.raw_headers.extend(headers)
    return response


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    logger.info(
        f"[Proxy] {request.method} {request.url.path} answered {exc.status_code}: {exc.message}"
    )
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


@router.api_route("/get", methods=PROXY_METHODS)
async def proxy_get(
    request: Request,
    url: Optional[str] = Query(None, description="Absolute URL to fetch"),
):
    """Fetch ``url`` with the caller's method and body and relay the answer."""
    if not url:
        raise InvalidRequest("Missing URL parameter")

    client = client_address(request, config.TRUST_PROXY_HOPS)
    proxy_request = ProxyRequest(
        method=request.method,
        target_url=url,
        headers=forwarder.prepare_headers(request),
        body=await request.body(),
    )
    with traced_request(
        tracer,
        operation="proxy_get",
        target_url=url,
        client=client,
        start_message=f"[Proxy] {request.method} {mask_url(url)} for {client}",
    ) as span:
        proxied = await forwarder.forward(proxy_request)
        span.set_attribute("proxy.content_type", proxied.content_type)
    try:
        return to_response(proxied)
    except Exception:
        await proxied.aclose()
        raise


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": config.SERVICE_NAME}
