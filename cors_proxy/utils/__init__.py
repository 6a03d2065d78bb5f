from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from starlette.requests import Request


def mask_url(url: Optional[str]) -> str:
    """Hide the password part of a URL's userinfo before it ends up in logs."""
    if not url:
        return "<empty>"
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if parts.password is None:
        return url
    userinfo = f"{parts.username}:****" if parts.username else "****"
    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit(parts._replace(netloc=f"{userinfo}@{host}"))


def client_address(request: Request, trusted_hops: int = 0) -> str:
    """
    Resolve the address of the calling client.

    With ``trusted_hops`` reverse proxies in front of the service, the address
    is read from ``X-Forwarded-For`` counting from the right, the same way the
    socket peer is the last hop.
    """
    peer = request.client.host if request.client else "unknown"
    if trusted_hops <= 0:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    chain = [addr.strip() for addr in forwarded.split(",") if addr.strip()]
    chain.append(peer)
    index = max(len(chain) - 1 - trusted_hops, 0)
    return chain[index]
