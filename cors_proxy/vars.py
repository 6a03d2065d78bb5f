import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "cors-proxy")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))
REWRITE_HTML_URLS = os.environ.get("REWRITE_HTML_URLS", "true").lower() == "true"

RATE_LIMITER = os.getenv("RATE_LIMITER", "FixedWindowRateLimiter")
RATE_LIMIT_WINDOW_SECONDS = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "50"))
# Number of reverse proxies in front of the service whose X-Forwarded-For entry is trusted
TRUST_PROXY_HOPS = max(int(os.getenv("TRUST_PROXY_HOPS", "1")), 0)

CORS_ALLOW_ORIGIN = os.getenv("CORS_ALLOW_ORIGIN", "*")
CORS_ALLOW_HEADERS = os.getenv(
    "CORS_ALLOW_HEADERS", "Origin, X-Requested-With, Content-Type, Accept"
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
