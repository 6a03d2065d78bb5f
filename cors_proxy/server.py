import logging
from contextlib import asynccontextmanager
from typing import Sequence

import uvicorn
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from cors_proxy import vars as config
from cors_proxy.cors import add_cors_headers
from cors_proxy.proxy.errors import ProxyError
from cors_proxy.rate_limit import RateLimitMiddleware, rate_limiter
from cors_proxy.routes import proxy_error_handler, router

logger = logging.getLogger("uvicorn.error")


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streaming responses.
    Relayed bodies otherwise produce one span per chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"CORS Proxy server listening on port {config.PORT}")
    yield
    logger.info("CORS Proxy server shutting down")


app = FastAPI(title="CORS Proxy", lifespan=lifespan)
instrumentator = Instrumentator()

instrumentator.instrument(app).expose(app)

trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": config.SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if config.OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=config.OTLP_ENDPOINT,
        headers=config.OTLP_HEADERS or None,
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app, excluded_urls="metrics,health")

app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": config.SERVICE_NAME})

limiter = rate_limiter()
rate_limit_middleware = RateLimitMiddleware(limiter)


# Middleware registered last runs first: CORS wraps the rate limiter.
@app.middleware("http")
async def rate_limit_handler(request, call_next):
    return await rate_limit_middleware.process_request(request, call_next)


app.middleware("http")(add_cors_headers)

app.add_exception_handler(ProxyError, proxy_error_handler)
app.include_router(router)


def main():
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL)


if __name__ == "__main__":
    main()
