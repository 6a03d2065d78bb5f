import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse

from cors_proxy import vars as config
from cors_proxy.rate_limit.limiter import RateLimiterBase, RateLimitResult
from cors_proxy.utils import client_address

logger = logging.getLogger("uvicorn.error")

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(time.time() + result.reset_after)),
    }


class RateLimitMiddleware:
    """Rejects clients over their window's quota before any route runs."""

    def __init__(
        self, limiter: RateLimiterBase, trusted_hops: int = config.TRUST_PROXY_HOPS
    ):
        self.limiter = limiter
        self.trusted_hops = trusted_hops

    async def process_request(self, request: Request, call_next):
        client = client_address(request, self.trusted_hops)
        result = self.limiter.hit(client)

        if not result.allowed:
            logger.warning(
                f"[RateLimit] Client {client} exceeded {result.limit} requests, "
                f"retry in {result.retry_after}s"
            )
            response = JSONResponse({"error": RATE_LIMIT_MESSAGE}, status_code=429)
            response.headers["Retry-After"] = str(result.retry_after)
        else:
            response = await call_next(request)

        for name, value in rate_limit_headers(result).items():
            response.headers[name] = value
        return response
