from __future__ import annotations
import asyncio
from typing import Optional

import httpx


class HttpopError(Exception):
    """Base class for errors raised by httpop-core."""


class PermanentError(HttpopError):
    """Marker for failures the retry driver must never retry."""


class HTTPCallError(PermanentError):
    """
    A response in the 4xx range.

    The body has already been drained and the response closed; `body` is empty
    when draining failed.
    """

    def __init__(self, code: int, body: str = "", response: Optional[httpx.Response] = None):
        self.code = code
        self.body = body
        self.response = response
        super().__init__(code, body)

    def __str__(self) -> str:
        if self.body:
            return f"failed HTTP call: {self.code}: {self.body}"
        return f"failed HTTP call: {self.code}"


class DeadlineExceeded(HttpopError, asyncio.TimeoutError):
    """The call's deadline passed before the waiter admitted it or the transport answered."""


class RetryExhaustedError(HttpopError):
    def __init__(self, last_error: BaseException):
        self.last_error = last_error
        super().__init__(f"exhausted all retries: {last_error}")
