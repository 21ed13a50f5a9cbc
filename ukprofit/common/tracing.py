"""OpenTelemetry wiring: OTLP export, FastAPI request spans and a domain tracer."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ukprofit.common.config import settings

# Health checks and Prometheus scrapes get no request spans.
UNTRACED_ROUTES = "health,metrics"

# Resolves through the global provider, so spans are no-ops until setup_tracing runs.
tracer = trace.get_tracer("ukprofit")


def setup_tracing(service_name: str) -> TracerProvider | None:
    """Register an OTLP-exporting provider unless TRACING_ENABLED is off."""

    if not settings.tracing_enabled:
        return None
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    trace.set_tracer_provider(provider)
    return provider


def instrument_app(app: FastAPI) -> None:
    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_ROUTES)
