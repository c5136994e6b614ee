"""OpenTelemetry distributed tracing setup."""

import logging

from django.conf import settings
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.celery import CeleryInstrumentor
from opentelemetry.instrumentation.django import DjangoInstrumentor
from opentelemetry.instrumentation.psycopg import PsycopgInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio

logger = logging.getLogger(__name__)


def init_tracing() -> None:
    """Initialize OpenTelemetry distributed tracing.

    Without it, ``trace.get_tracer`` hands out no-op tracers and the spans opened
    around each validation cost nothing.
    """
    if not settings.ENABLE_OBSERVABILITY:
        logger.info("Observability disabled - skipping OpenTelemetry tracing initialization")
        return

    resource = Resource.create(
        {
            SERVICE_NAME: settings.SERVICE_NAME,
            SERVICE_VERSION: settings.SERVICE_VERSION,
            DEPLOYMENT_ENVIRONMENT: settings.DEPLOYMENT_ENVIRONMENT,
        }
    )
    tracer_provider = TracerProvider(
        resource=resource,
        sampler=ParentBasedTraceIdRatio(settings.TRACING_SAMPLE_RATE),
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.OTEL_EXPORTER_OTLP_ENDPOINT}/v1/traces"))
    )
    trace.set_tracer_provider(tracer_provider)

    try:
        DjangoInstrumentor().instrument()
        CeleryInstrumentor().instrument()
        PsycopgInstrumentor().instrument()
        logger.info(
            "OpenTelemetry tracing initialized: service=%s, sample_rate=%s",
            settings.SERVICE_NAME,
            settings.TRACING_SAMPLE_RATE,
        )
    except Exception:
        logger.exception("Failed to initialize OpenTelemetry tracing")
