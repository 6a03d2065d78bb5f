"""
Error taxonomy of the proxy.

Every error that reaches a client is a ProxyError and is rendered as
``{"error": <message>}`` with the carried status code.
"""

from typing import Optional


class ProxyError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict:
        return {"error": self.message}


class InvalidRequest(ProxyError):
    """Missing or malformed target URL."""

    status_code = 400


class UpstreamError(ProxyError):
    """The outbound fetch failed or the target answered with an error status."""

    status_code = 500


class TransformError(ProxyError):
    """HTML parsing or serialization failed; callers fall back to the original body."""

    status_code = 500
