"""OpenTelemetry tracing configuration."""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.semconv.resource import ResourceAttributes

from deployctl.config import APP_VERSION, ObservabilitySettings


def setup_tracing(settings: ObservabilitySettings) -> bool:
    """Install an OTLP tracer provider. Returns False when tracing is disabled."""
    if not settings.tracing_enabled:
        return False

    resource = Resource.create({
        ResourceAttributes.SERVICE_NAME: settings.service_name,
        ResourceAttributes.SERVICE_VERSION: APP_VERSION,
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
    )
    trace.set_tracer_provider(provider)
    return True


def get_tracer(name: str = "deployctl") -> trace.Tracer:
    """Get a tracer instance. A no-op tracer until ``setup_tracing`` runs."""
    return trace.get_tracer(name)
