"""Configuration du tracing OpenTelemetry pour l'observabilité.

Ce module configure le tracing distribué avec OpenTelemetry pour exporter les traces vers un
endpoint OTLP configuré via `OTLP_ENDPOINT`. Sans endpoint, le tracing reste désactivé.
"""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from portal.core.container import container


def setup_tracing() -> bool:
    """Installe le provider OTLP si l'endpoint est configuré; renvoie True si actif."""
    endpoint = getattr(container.settings, "OTLP_ENDPOINT", None)
    if not endpoint:
        return False

    provider = TracerProvider(
        resource=Resource.create({"service.name": container.settings.APP_NAME})
    )
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    return True
