import asyncio
import os
import random

import httpx

from httpop_core import Client, ClientConfig, RetryPolicy
from httpop_core.contrib.aiolimiter_waiter import RateLimitWaiter
from httpop_core.otel_setup import init_tracer, init_metrics, shutdown
from httpop_core.otel_runtime import send_traced_optional

# Enable tracing / metrics via env (can still be disabled by user)
os.environ.setdefault("HTTPOP_OTEL_ENABLED", "1")
os.environ.setdefault("HTTPOP_OTEL_METRICS_ENABLED", "1")

# Defaults for local collector
os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", "http://127.0.0.1:4318")


class FlakyTransport:
    """
    In-process stand-in for a server:
    - drops the connection randomly (to trigger retries)
    - answers 404 for /missing, 200 otherwise
    """

    def __init__(self, fail_prob: float):
        self.fail_prob = fail_prob

    async def send(self, request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(random.uniform(0.01, 0.05))
        if random.random() < self.fail_prob:
            raise httpx.ConnectError("connection reset in httpop-core smoke demo", request=request)
        if request.url.path == "/missing":
            return httpx.Response(404, text="no such thing", request=request)
        return httpx.Response(200, text="ok", request=request)


async def main() -> None:
    exporter = os.getenv("HTTPOP_OTEL_EXPORTER", "http").lower()
    service_name = "httpop-core-otel-smoke"

    init_tracer(service_name=service_name, exporter=exporter)
    init_metrics(service_name=service_name, exporter=exporter)

    n_ops = int(os.getenv("HTTPOP_SMOKE_OPS", "30"))
    fail_prob = float(os.getenv("HTTPOP_SMOKE_FAIL_PROB", "0.4"))

    print(f"[httpop-core] running smoke: n_ops={n_ops}, fail_prob={fail_prob}, exporter={exporter}")

    client = Client(
        ClientConfig(
            transport=FlakyTransport(fail_prob),
            waiter=RateLimitWaiter(rate=20, burst=5),
            retry_policy=RetryPolicy(initial_interval=0.05, max_interval=0.2, max_elapsed_time=2.0),
        )
    )

    for i in range(n_ops):
        path = "/missing" if i % 10 == 9 else f"/items/{i}"
        request = httpx.Request("GET", f"http://smoke.invalid{path}")
        try:
            response = await send_traced_optional(
                client,
                request,
                timeout=5.0,
                span_name="httpop.smoke",
                base_attrs={"httpop.demo_op_index": i},
            )
            body = await response.aread()
            print(f"[httpop-core] op #{i} -> {response.status_code} {body!r}")
        except Exception as exc:
            print(f"[httpop-core] op #{i} failed: {exc}")

    shutdown()
    print("[httpop-core] smoke run complete")


if __name__ == "__main__":
    asyncio.run(main())
