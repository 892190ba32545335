from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .classify import is_client_error, transient_classifier
from .core import RetryPolicy, execute
from .errors import DeadlineExceeded, HTTPCallError, RetryExhaustedError
from .types import PreAttemptFn, Transport, Waiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    transport: Transport
    waiter: Optional[Waiter] = None
    retry_policy: Optional[RetryPolicy] = None

    def __post_init__(self) -> None:
        if self.transport is None or not callable(getattr(self.transport, "send", None)):
            raise TypeError("transport must provide an async send(request) method")
        if self.waiter is not None and not callable(getattr(self.waiter, "wait", None)):
            raise TypeError("waiter must provide an async wait(timeout) method")
        if self.retry_policy is not None and not isinstance(self.retry_policy, RetryPolicy):
            raise TypeError("retry_policy must be a RetryPolicy")


async def read_body(response: httpx.Response) -> bytes:
    """Drain the response body and close it, whatever happens."""
    try:
        return await response.aread()
    finally:
        await response.aclose()


class Client:
    """
    Sends requests through a transport, gated by an optional waiter and
    retried under an optional policy.

    Safe to share between tasks; the waiter is the only shared state.
    """

    __slots__ = ("_transport", "_waiter", "_retry_policy")

    def __init__(self, config: ClientConfig):
        self._transport = config.transport
        self._waiter = config.waiter
        self._retry_policy = config.retry_policy

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def waiter(self) -> Optional[Waiter]:
        return self._waiter

    @property
    def retry_policy(self) -> Optional[RetryPolicy]:
        return self._retry_policy

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *a) -> bool:
        await self.aclose()
        return False

    async def aclose(self) -> None:
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def send(
        self,
        request: httpx.Request,
        *,
        timeout: Optional[float] = None,
        pre_attempt: Optional[PreAttemptFn] = None,
    ) -> httpx.Response:
        """
        Send `request`, returning the response with its body still open.

        `timeout` bounds the whole call (waits, sends and retry sleeps).
        Raises HTTPCallError for 4xx responses. With a retry policy, every
        failure is raised as RetryExhaustedError chained to the last error.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        async def _once():
            if pre_attempt:
                await pre_attempt()
            return await self._attempt(request, deadline)

        if self._retry_policy is None:
            return await _once()

        try:
            return await execute(
                lambda: self._attempt(request, deadline),
                classifier=transient_classifier,
                policy=self._retry_policy,
                pre_attempt=pre_attempt,
                deadline=deadline,
            )
        except Exception as exc:
            raise RetryExhaustedError(exc) from exc

    async def _attempt(self, request: httpx.Request, deadline: Optional[float]) -> httpx.Response:
        if self._waiter is not None:
            await self._waiter.wait(_remaining(deadline))

        response = await self._call_transport(request, deadline)

        if is_client_error(response.status_code):
            raise await _classified_error(response, deadline)

        # TODO: honour Retry-After on 429/503 by stretching the next backoff delay.
        return response

    async def _call_transport(
        self, request: httpx.Request, deadline: Optional[float]
    ) -> httpx.Response:
        remaining = _remaining(deadline)
        if remaining is None:
            return await self._transport.send(request)
        if remaining <= 0:
            raise DeadlineExceeded(f"deadline exceeded before sending {request.method} {request.url}")

        task = asyncio.ensure_future(self._transport.send(request))
        try:
            done, _ = await asyncio.wait({task}, timeout=remaining)
        except asyncio.CancelledError:
            _abandon(task)
            raise
        if not done:
            _abandon(task)
            raise DeadlineExceeded(f"deadline exceeded while sending {request.method} {request.url}")
        return task.result()


# Responses that arrived after their caller gave up, still being closed.
_late_closes: set = set()


def _abandon(task: asyncio.Future) -> None:
    task.cancel()
    task.add_done_callback(_close_late_response)


def _close_late_response(task: asyncio.Future) -> None:
    if task.cancelled() or task.exception() is not None:
        return
    closing = asyncio.ensure_future(task.result().aclose())
    _late_closes.add(closing)
    closing.add_done_callback(_late_closes.discard)


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return deadline - asyncio.get_running_loop().time()


async def _classified_error(response: httpx.Response, deadline: Optional[float]) -> HTTPCallError:
    # The drain counts against the call's deadline; running out of time is a failed drain.
    remaining = _remaining(deadline)
    try:
        if remaining is None:
            body = await read_body(response)
        else:
            body = await asyncio.wait_for(read_body(response), timeout=max(remaining, 0.0))
    except Exception as exc:
        logger.debug("could not read body of %d response: %r", response.status_code, exc)
        await response.aclose()
        return HTTPCallError(response.status_code, response=response)
    logger.debug("permanent failure: status %d (%d bytes)", response.status_code, len(body))
    return HTTPCallError(response.status_code, response.text, response=response)
