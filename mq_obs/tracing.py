"""
Distributed Tracing Setup (OpenTelemetry).

Auto-instruments: httpx ONLY (every upstream Marqeta call).
"""

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from mq_config.settings import Settings
from mq_obs.logging import get_logger

logger = get_logger(__name__)


def setup_tracing(settings: Settings, version: str = "1.0.0") -> bool:
    """
    Setup OpenTelemetry distributed tracing.

    Instruments: httpx
    Exports: OTLP (Jaeger/Tempo/Collector)
    """
    if not settings.OTEL_TRACES_ENABLED:
        return False

    resource = Resource.create(
        {
            "service.name": settings.OTEL_SERVICE_NAME,
            "service.version": version,
        }
    )

    provider = TracerProvider(resource=resource)
    otlp_exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)
    provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    trace.set_tracer_provider(provider)

    HTTPXClientInstrumentor().instrument()

    logger.info("otel_tracing_enabled", service=settings.OTEL_SERVICE_NAME)
    return True
