# SPDX-License-Identifier: Apache-2.0

"""
OpenTelemetry Configuration

Sets up distributed tracing and logging for the barangay incident core.
Services create spans through the global tracer provider configured here.
"""

import os
import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

SERVICE_NAME = 'barangay-incident-core'

logger = logging.getLogger(__name__)

SAMPLING_RATIOS = {
    'production': 0.1,
    'staging': 0.5,
}


def get_sampler(environment: str) -> TraceIdRatioBased:
    """Environment-specific sampling; everything is sampled outside production and staging."""
    return TraceIdRatioBased(SAMPLING_RATIOS.get(environment, 1.0))


def setup_observability() -> TracerProvider:
    """
    Initialize OpenTelemetry instrumentation based on environment configuration.

    Returns:
        The configured tracer provider, or None when OTEL_ENABLED is false
    """
    environment = os.getenv('ENVIRONMENT', 'development')
    otel_enabled = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'
    service_version = os.getenv('SERVICE_VERSION', '1.0.0')

    # Configure structured logging
    setup_structured_logging(environment)

    if not otel_enabled:
        # Disable tracing by not setting up a tracer provider
        logger.info("OpenTelemetry disabled")
        return None

    # Configure resource attributes
    resource = Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": service_version,
        "deployment.environment": environment
    })

    # Configure tracer provider
    tracer_provider = TracerProvider(
        sampler=get_sampler(environment),
        resource=resource
    )

    # Environment-specific exporters
    if environment == 'production':
        # Production: Export to OTLP collector
        otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
        if otlp_endpoint:
            otlp_exporter = OTLPSpanExporter(
                endpoint=otlp_endpoint,
                headers={"Authorization": f"Bearer {os.getenv('OTEL_API_KEY', '')}"}
            )
            tracer_provider.add_span_processor(
                BatchSpanProcessor(otlp_exporter, max_export_batch_size=512)
            )
        else:
            logger.warning("OTEL_EXPORTER_OTLP_ENDPOINT not set; spans will not be exported")

    elif environment == 'staging':
        otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT', 'http://localhost:4317')
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    else:
        # Development: Console output
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

        otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
        if otlp_endpoint:
            tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    trace.set_tracer_provider(tracer_provider)
    logger.info(f"OpenTelemetry configured for {environment}")

    return tracer_provider


def setup_structured_logging(environment: str):
    """Configure logging levels per environment."""
    log_level = {
        'production': logging.WARNING,
        'staging': logging.INFO,
        'development': logging.DEBUG
    }.get(environment, logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
        handlers=[logging.StreamHandler()]
    )

    if environment == 'production':
        # Production: Reduce noise, focus on errors and business events
        logging.getLogger('pymongo').setLevel(logging.WARNING)
        logging.getLogger('domain').setLevel(logging.WARNING)

    elif environment == 'development':
        logging.getLogger('domain').setLevel(logging.DEBUG)
        logging.getLogger('services').setLevel(logging.DEBUG)
        logging.getLogger('pymongo').setLevel(logging.INFO)
