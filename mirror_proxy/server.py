from typing import Optional, Sequence

import httpx
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

from mirror_proxy.cors import add_cors_middleware
from mirror_proxy.routes import router
from mirror_proxy.vars import (
    METRICS_PATH,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    SERVICE_NAME,
    ProxyConfig,
    load_config,
)

instrumentator = Instrumentator()


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streamed
    upstream bodies. A large image relayed in chunks would otherwise produce
    one span per chunk.
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


def create_app(
    config: Optional[ProxyConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    metrics_path: Optional[str] = None,
) -> FastAPI:
    """
    Build the proxy application around an immutable configuration.

    ``transport`` replaces the outbound httpx transport (tests use
    ``httpx.MockTransport``). The metrics endpoint, when requested, is
    registered ahead of the catch-all proxy route.
    """
    # No docs routes: every path belongs to the proxy
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config if config is not None else load_config()
    app.state.transport = transport

    if metrics_path:
        instrumentator.instrument(app).expose(app, endpoint=metrics_path)

    add_cors_middleware(app)
    app.include_router(router)
    return app


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        # "key1=value1,key2=value2", parsed by the exporter
        headers=OTLP_HEADERS or None,
    )

    # Wrap exporter with filtering to remove noisy ASGI body spans
    filtering_exporter = FilteringSpanExporter(otlp_exporter)
    span_processor = BatchSpanProcessor(filtering_exporter)
    tracer_provider.add_span_processor(span_processor)

app = create_app(load_config(), metrics_path=METRICS_PATH)

FastAPIInstrumentor.instrument_app(
    app,
    excluded_urls=METRICS_PATH or "",
    server_request_hook=None,
    client_request_hook=None,
)

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})
