"""OpenTelemetry initialization for the Logos API process."""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

logger = logging.getLogger(__name__)

_TRACER_NAME = "logos"

# Guard flag: True once the global TracerProvider has been installed.
_tracer_provider_installed: bool = False


def init_telemetry(service_name: str = "logos-api") -> trace.Tracer:
    """Initialize OpenTelemetry tracing.

    When OTEL_EXPORTER_OTLP_ENDPOINT is set, configures a real TracerProvider
    with an OTLP gRPC exporter on the first call. Without it, the global no-op
    provider stays in place and spans cost nothing.
    """
    global _tracer_provider_installed

    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")

    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, using no-op tracer")
        return trace.get_tracer(_TRACER_NAME)

    if _tracer_provider_installed:
        return trace.get_tracer(_TRACER_NAME)

    # Import exporter only when needed
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    trace.set_tracer_provider(provider)
    _tracer_provider_installed = True
    logger.info("Telemetry initialized: endpoint=%s", endpoint)

    return trace.get_tracer(_TRACER_NAME)


def get_tracer(name: str = _TRACER_NAME) -> trace.Tracer:
    """Get a tracer from the current provider (useful for modules)."""
    return trace.get_tracer(name)
