"""
OpenTelemetry configuration and initialization for the Dynatrace MCP server

Telemetry is opt-in (OTEL_TELEMETRY_ENABLED). When enabled, spans and
metrics are exported over OTLP gRPC and every httpx request, which covers
all Dynatrace platform calls, is traced automatically.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from src.logging import get_logger

logger = get_logger('TELEMETRY')

TRUE_VALUES = ('true', '1', 'yes', 'on')

# Providers kept for shutdown; None until initialize_telemetry() succeeded
_tracer_provider = None
_meter_provider = None
_tracer = None
_meter = None


@dataclass(frozen=True)
class TelemetryConfig:
    enabled: bool
    service_name: str
    otlp_endpoint: str
    otlp_insecure: bool
    deployment_environment: str
    metric_export_interval_ms: int


def load_telemetry_config(env: Optional[Mapping[str, str]] = None) -> TelemetryConfig:
    """Read the OTEL_* variables, using os.environ when env is not given."""
    if env is None:
        env = os.environ

    try:
        interval = int(env.get('OTEL_METRIC_EXPORT_INTERVAL', '10000'))
    except ValueError:
        logger.warning(f"invalid OTEL_METRIC_EXPORT_INTERVAL | value:{env.get('OTEL_METRIC_EXPORT_INTERVAL')}")
        interval = 10000

    return TelemetryConfig(
        enabled=env.get('OTEL_TELEMETRY_ENABLED', 'false').lower() in TRUE_VALUES,
        service_name=env.get('OTEL_SERVICE_NAME', 'dynatrace-mcp-server'),
        otlp_endpoint=env.get('OTEL_EXPORTER_OTLP_ENDPOINT', 'http://localhost:4317'),
        otlp_insecure=env.get('OTEL_EXPORTER_OTLP_INSECURE', 'true').lower() in TRUE_VALUES,
        deployment_environment=env.get('DEPLOYMENT_ENVIRONMENT', 'development'),
        metric_export_interval_ms=interval,
    )


def is_telemetry_enabled() -> bool:
    return load_telemetry_config().enabled


def is_telemetry_initialized() -> bool:
    return _tracer is not None


def _build_resource(config: TelemetryConfig, service_version: Optional[str]):
    from opentelemetry.sdk.resources import Resource

    return Resource.create({
        "service.name": config.service_name,
        "service.version": service_version or "unknown",
        "service.namespace": "dynatrace-mcp",
        "deployment.environment": config.deployment_environment,
    })


def _create_tracer_provider(config: TelemetryConfig, resource):
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=config.otlp_insecure))
    )
    return provider


def _create_meter_provider(config: TelemetryConfig, resource):
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=config.otlp_endpoint, insecure=config.otlp_insecure),
        export_interval_millis=config.metric_export_interval_ms
    )
    return MeterProvider(resource=resource, metric_readers=[reader])


def initialize_telemetry(service_version: Optional[str] = None,
                         config: Optional[TelemetryConfig] = None) -> bool:
    """
    Initialize OpenTelemetry tracing, metrics and httpx instrumentation.

    Args:
        service_version: Version reported in the resource attributes
        config: Explicit configuration, read from the environment if omitted

    Returns:
        True if telemetry is active afterwards, False otherwise
    """
    global _tracer_provider, _meter_provider, _tracer, _meter

    if is_telemetry_initialized():
        return True

    config = config or load_telemetry_config()
    if not config.enabled:
        logger.info("telemetry disabled | set OTEL_TELEMETRY_ENABLED=true to export traces and metrics")
        return False

    try:
        from opentelemetry import trace, metrics
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        resource = _build_resource(config, service_version)
        tracer_provider = _create_tracer_provider(config, resource)
        meter_provider = _create_meter_provider(config, resource)
    except ImportError as e:
        logger.warning(f"telemetry disabled | missing dependencies: {e}")
        return False
    except Exception as e:
        logger.error(f"telemetry setup failed | endpoint:{config.otlp_endpoint} | error: {e}", exc_info=True)
        return False

    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)
    HTTPXClientInstrumentor().instrument()

    _tracer_provider = tracer_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("dynatrace-mcp-server", service_version)
    _meter = metrics.get_meter("dynatrace-mcp-server", service_version)

    logger.info(
        f"telemetry initialized | endpoint:{config.otlp_endpoint} | service:{config.service_name} | "
        f"environment:{config.deployment_environment}"
    )
    return True


def get_tracer():
    """Tracer of this server, None while telemetry is not initialized."""
    return _tracer


def get_meter():
    """Meter of this server, None while telemetry is not initialized."""
    return _meter


def shutdown_telemetry():
    """Flush pending spans and metrics and shut the providers down."""
    global _tracer_provider, _meter_provider, _tracer, _meter

    for provider in (_tracer_provider, _meter_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as e:
            logger.error(f"telemetry shutdown error | provider:{type(provider).__name__} | error: {e}")

    if _tracer_provider is not None:
        logger.info("telemetry shutdown complete")

    _tracer_provider = None
    _meter_provider = None
    _tracer = None
    _meter = None
