from __future__ import annotations
import asyncio
import itertools
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Tuple, Type, Optional
from .types import PreAttemptFn, TransientClassifier

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    initial_interval: float = 0.5
    multiplier: float = 1.5
    randomization_factor: float = 0.5
    max_interval: float = 5.0
    max_elapsed_time: Optional[float] = 30.0
    max_retries: Optional[int] = None

    def backoff(self) -> Iterator[float]:
        d = self.initial_interval
        retries = itertools.count() if self.max_retries is None else range(self.max_retries)
        for _ in retries:
            j = d * self.randomization_factor
            yield max(0.0, random.uniform(d - j, d + j))
            d = min(self.max_interval, d * self.multiplier)


async def execute(
    op: Callable[[], Any],
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    classifier: Optional[TransientClassifier] = None,
    policy: Optional[RetryPolicy] = None,
    pre_attempt: Optional[PreAttemptFn] = None,
    deadline: Optional[float] = None,
) -> Any:
    """
    Retry `op` on the policy's schedule.

    Gives up by re-raising the last error when the classifier calls it
    permanent, the schedule runs out, the next sleep would overrun
    `max_elapsed_time`, or it would cross `deadline` (a loop.time() value).
    """
    policy = policy or RetryPolicy()
    loop = asyncio.get_running_loop()
    started = time.monotonic()
    delays = policy.backoff()

    async def _once():
        if pre_attempt:
            await pre_attempt()
        res = op()
        return await res if asyncio.iscoroutine(res) else res

    for attempt in itertools.count(1):
        try:
            return await _once()
        except retry_on as exc:
            is_transient = classifier(exc) if classifier else True
            if not is_transient:
                raise
            delay = next(delays, None)
            if delay is None:
                logger.info("giving up after %d attempts: %r", attempt, exc)
                raise
            elapsed = time.monotonic() - started
            if policy.max_elapsed_time is not None and elapsed + delay > policy.max_elapsed_time:
                logger.info("giving up after %.3fs (%d attempts): %r", elapsed, attempt, exc)
                raise
            if deadline is not None and loop.time() + delay > deadline:
                logger.info("giving up, deadline reached after %d attempts: %r", attempt, exc)
                raise
            logger.debug("attempt %d failed (%r), retrying in %.3fs", attempt, exc, delay)
            await asyncio.sleep(delay)
