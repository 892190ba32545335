from __future__ import annotations

import os
import time
from typing import Any, Dict, Optional

import httpx

from .client import Client
from .errors import HTTPCallError, RetryExhaustedError
from .types import PreAttemptFn


# --- Helpers for env flags ----------------------------------------------------


def _otel_enabled(explicit: Optional[bool]) -> bool:
    if explicit is not None:
        return explicit
    return os.getenv("HTTPOP_OTEL_ENABLED", "").lower() in {"1", "true", "yes", "on"}


def _metrics_enabled() -> bool:
    return os.getenv("HTTPOP_OTEL_METRICS_ENABLED", "").lower() in {
        "1",
        "true",
        "yes",
        "on",
    }


# --- Metrics plumbing (lazy / optional) --------------------------------------

try:
    from opentelemetry import metrics as _otel_metrics  # type: ignore[attr-defined]
except Exception:  # pragma: no cover - OTEL not installed
    _otel_metrics = None  # type: ignore[assignment]

_requests_counter = None
_attempts_counter = None
_duration_histogram = None
_metrics_instruments_ready = False


def _ensure_metrics() -> None:
    """
    Lazily create metric instruments if metrics are enabled and OTEL is available.
    Safe to call multiple times.
    """
    global _requests_counter, _attempts_counter, _duration_histogram, _metrics_instruments_ready

    if _metrics_instruments_ready:
        return

    if not _metrics_enabled():
        return

    if _otel_metrics is None:
        return

    meter = _otel_metrics.get_meter(__name__)

    _requests_counter = meter.create_counter(
        "httpop_requests_total",
        description="Total number of httpop-core requests.",
    )
    _attempts_counter = meter.create_counter(
        "httpop_attempts_total",
        description="Total number of httpop-core attempts (including retries).",
    )
    _duration_histogram = meter.create_histogram(
        "httpop_request_duration_seconds",
        description="Latency of httpop-core requests, retries and waits included.",
        unit="s",
    )

    _metrics_instruments_ready = True


def _outcome(exc: BaseException) -> str:
    cause = exc.last_error if isinstance(exc, RetryExhaustedError) else exc
    if isinstance(cause, HTTPCallError):
        return "client_error"
    if isinstance(exc, RetryExhaustedError):
        return "exhausted"
    return "error"


# --- Traced sending -----------------------------------------------------------


async def send_traced_optional(
    client: Client,
    request: httpx.Request,
    *,
    timeout: Optional[float] = None,
    pre_attempt: Optional[PreAttemptFn] = None,
    # tracing knobs (all optional)
    otel_enabled: Optional[bool] = None,  # None -> read env HTTPOP_OTEL_ENABLED
    span_name: str = "httpop.request",
    base_attrs: Optional[Dict[str, Any]] = None,
) -> httpx.Response:
    """
    Send with tracing *if* OpenTelemetry is installed and enabled.
    Otherwise, falls back to plain `client.send()` with zero overhead.

    When HTTPOP_OTEL_METRICS_ENABLED=1 (and OTEL metrics are available),
    this also emits:
      - httpop_requests_total
      - httpop_attempts_total
      - httpop_request_duration_seconds
    """
    # Fast path: OTEL disabled entirely -> no tracing, no metrics
    if not _otel_enabled(otel_enabled):
        return await client.send(request, timeout=timeout, pre_attempt=pre_attempt)

    # Lazy import so this module stays importable without otel deps
    try:
        from opentelemetry import trace
        from opentelemetry.trace import SpanKind, Status, StatusCode
    except Exception:
        # Otel not installed -> silently fall back
        return await client.send(request, timeout=timeout, pre_attempt=pre_attempt)

    tracer = trace.get_tracer(__name__)

    _ensure_metrics()
    metrics_active = _metrics_instruments_ready and _metrics_enabled()

    policy = client.retry_policy
    attrs: Dict[str, Any] = {
        "http.request.method": request.method,
        "url.full": str(request.url),
        "server.address": request.url.host,
        "httpop.rate_limited": client.waiter is not None,
        "httpop.retry.enabled": policy is not None,
        "httpop.timeout_s": timeout,
    }
    if policy is not None:
        attrs.update(
            {
                "httpop.retry.initial_interval": policy.initial_interval,
                "httpop.retry.multiplier": policy.multiplier,
                "httpop.retry.max_interval": policy.max_interval,
                "httpop.retry.max_elapsed_time": policy.max_elapsed_time,
                "httpop.retry.max_retries": policy.max_retries,
            }
        )
    if base_attrs:
        attrs.update({k: v for k, v in base_attrs.items() if v is not None})

    metric_attrs_base = {
        "http.request.method": request.method,
        "server.address": request.url.host or "unknown",
    }

    def set_attrs(span, d):
        for k, v in d.items():
            if v is not None:
                span.set_attribute(k, v)

    attempt_events = {"n": 0}

    # Operation-level timing + outcome for metrics
    start = time.perf_counter()

    def record(outcome: str, status_code: Optional[int] = None) -> None:
        if not (metrics_active and _requests_counter is not None and _duration_histogram is not None):
            return
        metric_attrs = {**metric_attrs_base, "httpop.outcome": outcome}
        if status_code is not None:
            metric_attrs["http.response.status_code"] = status_code
        _requests_counter.add(1, attributes=metric_attrs)
        _duration_histogram.record(time.perf_counter() - start, attributes=metric_attrs)

    with tracer.start_as_current_span(span_name, kind=SpanKind.CLIENT) as root:
        set_attrs(root, attrs)
        orig_pre = pre_attempt

        async def pre():
            attempt_events["n"] += 1

            if metrics_active and _attempts_counter is not None:
                _attempts_counter.add(1, attributes=metric_attrs_base)

            root.add_event(
                "httpop.attempt",
                {"httpop.attempt.number": attempt_events["n"]},
            )
            if orig_pre:
                await orig_pre()

        try:
            response = await client.send(request, timeout=timeout, pre_attempt=pre)
        except BaseException as exc:
            outcome = _outcome(exc)
            cause = exc.last_error if isinstance(exc, RetryExhaustedError) else exc
            status_code = cause.code if isinstance(cause, HTTPCallError) else None
            root.record_exception(exc)
            root.set_attribute("httpop.outcome", outcome)
            root.set_attribute("httpop.attempts", attempt_events["n"])
            if status_code is not None:
                root.set_attribute("http.response.status_code", status_code)
            root.set_status(Status(StatusCode.ERROR))
            record(outcome, status_code)
            raise

        root.set_attribute("httpop.outcome", "success")
        root.set_attribute("httpop.attempts", attempt_events["n"])
        root.set_attribute("http.response.status_code", response.status_code)
        record("success", response.status_code)
        return response
