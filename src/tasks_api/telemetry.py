"""OpenTelemetry wiring for the Tasks API.

The instrumentors cover request handling, SQL statements, the log
shipper's outbound POSTs and log/trace correlation. Service-level counters
live next to the code they count: routes/tasks.py, shipper.py and
middleware.py.
"""

import atexit
import logging
from typing import Any

from opentelemetry import _logs, metrics, trace
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from tasks_api import __version__
from tasks_api.config import Settings


logger = logging.getLogger(__name__)

_initialized: bool = False


def setup_telemetry(
    settings: Settings,
    engine: Any = None,
) -> tuple[trace.Tracer, metrics.Meter]:
    """Point traces, metrics and logs at the OTLP endpoint from ``settings``.

    When telemetry is disabled, or already configured by an earlier call, only
    the tracer and meter handles are returned. ``engine`` is the async engine
    whose statements should produce spans.
    """
    global _initialized

    service_name = settings.otel_service_name

    if not settings.telemetry_enabled:
        logger.info("OpenTelemetry disabled")
        return trace.get_tracer(service_name), metrics.get_meter(service_name)

    if _initialized:
        return trace.get_tracer(service_name), metrics.get_meter(service_name)

    endpoint = settings.otel_exporter_otlp_endpoint
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "deployment.environment": settings.scout_environment,
        }
    )

    # Traces
    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces"))
    )
    trace.set_tracer_provider(trace_provider)

    # Metrics
    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
        export_interval_millis=10000,
    )
    metric_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(metric_provider)

    # Logs
    log_provider = LoggerProvider(resource=resource)
    log_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=f"{endpoint}/v1/logs"))
    )
    _logs.set_logger_provider(log_provider)
    logging.getLogger().addHandler(LoggingHandler(level=logging.INFO, logger_provider=log_provider))

    # Providers buffer; flush them when the process exits
    atexit.register(trace_provider.shutdown)
    atexit.register(metric_provider.shutdown)
    atexit.register(log_provider.shutdown)

    # httpx: spans for the remote log shipper's POSTs
    HTTPXClientInstrumentor().instrument()

    # logging: trace_id/span_id on every record
    LoggingInstrumentor().instrument(set_logging_format=True)

    # SQLAlchemy: one span per statement
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    _initialized = True

    logger.info(
        "OpenTelemetry initialized",
        extra={"service": service_name, "endpoint": endpoint},
    )

    return trace.get_tracer(service_name), metrics.get_meter(service_name)


def instrument_fastapi(app: Any) -> None:
    """Add request spans to ``app``, leaving ``/health`` untraced."""
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls="health",
        exclude_spans=["receive", "send"],
    )
