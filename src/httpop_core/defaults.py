"""
Opinionated presets: the default backoff schedule, the default rate limit and
a `build_client` helper wiring them to httpx.
"""
from __future__ import annotations

import os
from typing import Optional

from .client import Client, ClientConfig
from .contrib.aiolimiter_waiter import RateLimitWaiter
from .contrib.httpx_transport import HTTPXTransport
from .core import RetryPolicy

DEFAULT_MAX_RPS = 1.0
DEFAULT_BURST = 1
DEFAULT_TIMEOUT_S = 30.0


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        initial_interval=0.5,
        multiplier=1.5,
        randomization_factor=0.5,
        max_interval=5.0,
        max_elapsed_time=30.0,
    )


def default_waiter() -> RateLimitWaiter:
    return RateLimitWaiter(rate=DEFAULT_MAX_RPS, burst=DEFAULT_BURST)


# --- Helpers for env settings -------------------------------------------------


def _env_float(name: str, fallback: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return fallback
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def build_client(
    *,
    max_rps: Optional[float] = None,
    burst: Optional[int] = None,
    timeout: Optional[float] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> Client:
    """
    Client over a fresh httpx.AsyncClient, rate limited and retried.

    Unset arguments come from HTTPOP_MAX_RPS / HTTPOP_BURST / HTTPOP_TIMEOUT_S,
    then from the presets above. `max_rps=0` disables rate limiting.
    """
    if max_rps is None:
        max_rps = _env_float("HTTPOP_MAX_RPS", DEFAULT_MAX_RPS)
    if burst is None:
        burst = int(_env_float("HTTPOP_BURST", DEFAULT_BURST))
    if timeout is None:
        timeout = _env_float("HTTPOP_TIMEOUT_S", DEFAULT_TIMEOUT_S)

    waiter = RateLimitWaiter(rate=max_rps, burst=burst) if max_rps > 0 else None
    return Client(
        ClientConfig(
            transport=HTTPXTransport(timeout=timeout),
            waiter=waiter,
            retry_policy=retry_policy or default_retry_policy(),
        )
    )
