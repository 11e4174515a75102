"""
Observability bootstrap for the structural drift monitor.

Provides OpenTelemetry-based tracing and metrics plus stdout/OTLP logging.
Instruments bind to the global providers, so they are no-ops until
setup_observability() installs real ones.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

if TYPE_CHECKING:
    from opentelemetry.metrics import Meter
    from opentelemetry.trace import Tracer

logger = logging.getLogger(__name__)

_METER_NAME = "structural_drift"

# Global instances (set by setup_observability or lazily on first use)
_tracer: Tracer | None = None
_meter: Meter | None = None
_metrics: DriftMetrics | None = None


class DriftMetrics:
    """Centralized metrics for drift monitor runs.

    All metrics use the 'structural_drift.' prefix.
    """

    def __init__(self, meter: Meter) -> None:
        """Initialize drift instruments on the provided meter."""
        self.runs = meter.create_counter(
            "structural_drift.runs",
            description="Drift monitor runs by outcome",
            unit="1",
        )
        self.alerts = meter.create_counter(
            "structural_drift.alerts",
            description="Drift metrics reported at warn or critical status",
            unit="1",
        )
        self.metric_value = meter.create_histogram(
            "structural_drift.metric_value",
            description="Observed drift indicator values",
            unit="1",
        )
        self.recommendations = meter.create_counter(
            "structural_drift.recommendations",
            description="Rollback recommendations recorded",
            unit="1",
        )


def setup_observability(
    service_name: str = "structural-drift-monitor",
    service_version: str = "0.1.0",
    otlp_endpoint: str | None = None,
) -> tuple[Tracer, Meter, DriftMetrics]:
    """Initialize OpenTelemetry instrumentation for traces, metrics, and logs.

    Args:
        service_name: Name of the service for telemetry
        service_version: Version of the service
        otlp_endpoint: OTLP collector endpoint (defaults to OTEL_EXPORTER_OTLP_ENDPOINT env var)

    Returns:
        Tuple of (tracer, meter, metrics) for manual instrumentation
    """
    global _tracer, _meter, _metrics

    if otlp_endpoint is None:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")

    resource = Resource.create(
        {
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )

    # --- Tracing Setup ---
    tracer_provider = TracerProvider(resource=resource)
    if otlp_endpoint:
        otlp_span_exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
    trace.set_tracer_provider(tracer_provider)

    # --- Metrics Setup ---
    metric_reader = None
    if otlp_endpoint:
        otlp_metric_exporter = OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True)
        metric_reader = PeriodicExportingMetricReader(
            otlp_metric_exporter, export_interval_millis=30000
        )

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[metric_reader] if metric_reader else [],
    )
    metrics.set_meter_provider(meter_provider)

    # --- Logging Setup ---
    logger_provider = LoggerProvider(resource=resource)
    set_logger_provider(logger_provider)

    if otlp_endpoint:
        otlp_log_exporter = OTLPLogExporter(endpoint=otlp_endpoint, insecure=True)
        logger_provider.add_log_record_processor(BatchLogRecordProcessor(otlp_log_exporter))

    _tracer = trace.get_tracer(service_name, service_version)
    _meter = metrics.get_meter(service_name, service_version)
    _metrics = DriftMetrics(_meter)

    if otlp_endpoint:
        logger.info(f"Observability initialized: endpoint={otlp_endpoint}")
    else:
        logger.info("Observability exporters disabled (OTEL_EXPORTER_OTLP_ENDPOINT not set)")

    return _tracer, _meter, _metrics


def configure_logging(level: str, otel_level: str, otlp_endpoint: str | None = None) -> None:
    """Configure dual-handler logging to STDOUT and OTLP.

    Args:
        level: Logging level for stdout handler.
        otel_level: Logging level for OTLP handler.
        otlp_endpoint: Collector endpoint; the OTLP handler is added only when set.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    numeric_otel_level = getattr(logging, otel_level.upper(), logging.INFO)

    # The root logger must have the lowest level of all handlers
    root_level = min(numeric_level, numeric_otel_level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(root_level)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(numeric_level)
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if otlp_endpoint:
        # The LoggingHandler uses the global provider installed by setup_observability.
        otlp_handler = LoggingHandler(level=numeric_otel_level)
        root_logger.addHandler(otlp_handler)
        logger.info("OTLP log handler configured and added.")

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)


def get_drift_metrics() -> DriftMetrics:
    """Get the drift metrics instruments, creating them on first use."""
    global _meter, _metrics
    if _metrics is None:
        _meter = metrics.get_meter(_METER_NAME)
        _metrics = DriftMetrics(_meter)
    return _metrics
