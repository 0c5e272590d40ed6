"""
Bounded retries for idempotent Supabase calls.

Reads, customer lookups and patches go through ``retry_call``. Inserts
and Stripe calls are never retried here.

Backoff is exponential with jitter. A failure carrying ``retry_after``
(429/503 with a Retry-After header) waits at least that long, and the
whole sequence must fit inside the policy's deadline so a slow store
cannot push an invocation past the API Gateway timeout.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from shared.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3  # total, including the first
    base_delay: float = 0.2
    max_delay: float = 2.0
    jitter: float = 0.2  # fraction of the delay added at random
    deadline: float = 8.0  # seconds, across all attempts and waits
    retry_on: Tuple[Type[BaseException], ...] = (TransientStoreError,)

    def backoff(self, failures: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait after the given number of consecutive failures."""
        delay = min(self.base_delay * (2 ** (failures - 1)), self.max_delay)
        delay += random.uniform(0, delay * self.jitter)
        if retry_after is not None:
            delay = max(delay, retry_after)
        return delay


def retry_call(
    func: Callable[..., T],
    *args,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    **kwargs,
) -> T:
    """
    Call func until it succeeds or the policy gives up.

    Raises:
        The last retryable error once attempts or the deadline run out.
        Anything outside ``policy.retry_on`` propagates immediately.
    """
    policy = policy or RetryPolicy()
    name = getattr(func, "__name__", repr(func))
    started = clock()
    failures = 0

    while True:
        try:
            return func(*args, **kwargs)
        except policy.retry_on as e:
            failures += 1
            delay = policy.backoff(failures, getattr(e, "retry_after", None))
            out_of_time = clock() - started + delay > policy.deadline

            if failures >= policy.attempts or out_of_time:
                logger.error(
                    f"Giving up on {name} after {failures} attempt(s): {e}",
                    extra={
                        "function": name,
                        "attempts": failures,
                        "deadline_exceeded": out_of_time,
                        "error_type": type(e).__name__,
                    },
                )
                raise

            logger.warning(
                f"{name} failed (attempt {failures}/{policy.attempts}), retrying in {delay:.2f}s",
                extra={"function": name, "attempt": failures, "delay_seconds": delay},
            )
            sleep(delay)
