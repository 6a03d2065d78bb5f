from fastapi import Request

from cors_proxy import vars as config


def cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": config.CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Headers": config.CORS_ALLOW_HEADERS,
    }


async def add_cors_headers(request: Request, call_next):
    """
    Stamp the proxy's CORS policy on every response, replacing whatever the
    upstream or an inner layer set, error and rate-limit responses included.
    """
    response = await call_next(request)
    for name, value in cors_headers().items():
        response.headers[name] = value
    return response
