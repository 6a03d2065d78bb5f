from .errors import ProxyError, InvalidRequest, UpstreamError, TransformError
from .forwarder import forward, prepare_headers, validate_target_url
from .html_rewriter import RewriteContext, rewrite

__all__ = [
    "ProxyError",
    "InvalidRequest",
    "UpstreamError",
    "TransformError",
    "forward",
    "prepare_headers",
    "validate_target_url",
    "RewriteContext",
    "rewrite",
]
