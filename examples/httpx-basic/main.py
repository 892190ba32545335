import asyncio
import logging
import os

import httpx

from httpop_core import HTTPCallError, RetryExhaustedError, build_client

logging.basicConfig(level=os.getenv("HTTPOP_LOG_LEVEL", "DEBUG"))

BASE_URL = os.getenv("HTTPOP_BASE_URL", "https://httpbin.org")


async def main() -> None:
    # 2 req/s, burst of 2; default backoff (0.5s .. 5s, 30s budget)
    async with build_client(max_rps=2, burst=2, timeout=10.0) as client:
        for path in ("/get", "/status/404", "/status/503", "/delay/1"):
            request = httpx.Request("GET", BASE_URL + path)
            try:
                response = await client.send(request, timeout=15.0)
            except RetryExhaustedError as exc:
                if isinstance(exc.last_error, HTTPCallError):
                    print(f"{path}: client error {exc.last_error.code}: {exc.last_error.body[:60]!r}")
                else:
                    print(f"{path}: gave up: {exc}")
                continue
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            # 5xx is handed back, not retried
            print(f"{path}: {response.status_code} ({len(body)} bytes)")


if __name__ == "__main__":
    asyncio.run(main())
