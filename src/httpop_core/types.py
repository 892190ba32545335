from __future__ import annotations
from typing import Protocol, Callable, Awaitable, Optional

import httpx


class Transport(Protocol):
    async def send(self, request: httpx.Request) -> httpx.Response: ...


class Waiter(Protocol):
    # Blocks until admitted; raises DeadlineExceeded once `timeout` seconds pass.
    async def wait(self, timeout: Optional[float] = None) -> None: ...


# Called before each attempt (e.g., record an attempt event)
PreAttemptFn = Callable[[], Awaitable[None]]

# Decide if an exception is transient (should retry)
TransientClassifier = Callable[[BaseException], bool]
