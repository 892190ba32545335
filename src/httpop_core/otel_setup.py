from __future__ import annotations

import os
from typing import Optional

# Imports are guarded so that httpop-core keeps working without the OTEL SDK
# (every function below becomes a no-op).
try:
    from opentelemetry import trace, metrics
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader

    _OTEL_AVAILABLE = True
except Exception:  # pragma: no cover - graceful fallback when OTEL is missing
    _OTEL_AVAILABLE = False

    TracerProvider = object  # type: ignore[assignment,misc]
    MeterProvider = object  # type: ignore[assignment,misc]


_tracer_provider: Optional[TracerProvider] = None
_meter_provider: Optional[MeterProvider] = None


def _exporter_kind(exporter: Optional[str]) -> str:
    kind = (exporter or os.getenv("HTTPOP_OTEL_EXPORTER", "http")).lower()
    if kind not in ("http", "grpc"):
        raise ValueError(f"unknown OTLP exporter {kind!r}; expected 'http' or 'grpc'")
    return kind


def _build_resource(service_name: str) -> "Resource":
    return Resource.create(
        {
            "service.name": service_name,
            "service.version": os.getenv("HTTPOP_SERVICE_VERSION", "dev"),
        }
    )


def _span_exporter(kind: str):
    # Exporter packages are imported on demand; only the chosen one must be installed.
    if kind == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    else:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    return OTLPSpanExporter()


def _metric_exporter(kind: str):
    if kind == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    else:
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
    return OTLPMetricExporter()


def init_tracer(service_name: str = "httpop-core", exporter: Optional[str] = None) -> None:
    """
    Install a TracerProvider exporting spans over OTLP.

    :param service_name: logical service name (appears in Jaeger, Tempo, etc.)
    :param exporter: "http" or "grpc"; defaults to HTTPOP_OTEL_EXPORTER, then "http"
    """
    global _tracer_provider

    if not _OTEL_AVAILABLE or _tracer_provider is not None:
        return

    provider = TracerProvider(resource=_build_resource(service_name))
    provider.add_span_processor(BatchSpanProcessor(_span_exporter(_exporter_kind(exporter))))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider


def init_metrics(service_name: str = "httpop-core", exporter: Optional[str] = None) -> None:
    """Install a MeterProvider exporting httpop_* instruments over OTLP."""
    global _meter_provider

    if not _OTEL_AVAILABLE or _meter_provider is not None:
        return

    reader = PeriodicExportingMetricReader(_metric_exporter(_exporter_kind(exporter)))
    provider = MeterProvider(resource=_build_resource(service_name), metric_readers=[reader])
    metrics.set_meter_provider(provider)
    _meter_provider = provider


def shutdown() -> None:
    """Flush and drop whatever providers init_tracer / init_metrics installed."""
    global _tracer_provider, _meter_provider

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None
    if _meter_provider is not None:
        _meter_provider.shutdown()
        _meter_provider = None
