from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from fetch.errors import ErrorKind, classify_error
from sources.types import PlaceSource

logger = logging.getLogger(__name__)

# Only transient failures are worth another attempt.
RETRYABLE_KINDS = frozenset({ErrorKind.network_error, ErrorKind.firebase_error})


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff with jitter, capped at `max_attempts` tries in total.
    """

    max_attempts: int = 3
    initial_delay_s: float = 1.0
    max_delay_s: float = 10.0
    jitter: float = 0.3

    def delay_for(self, attempt: int, *, rng: random.Random | None = None) -> float:
        """
        Delay before retry number `attempt` (1-based).

        Each delay doubles the previous one, plus up to `jitter * delay` random extra,
        never exceeding `max_delay_s`.
        """
        base = self.initial_delay_s * (2 ** max(0, attempt - 1))
        r = (rng or random).random()
        return min(base + r * self.jitter * base, self.max_delay_s)


async def retry_async(
    op: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    *,
    retryable: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: random.Random | None = None,
) -> Any:
    is_retryable = retryable or (lambda e: classify_error(e) in RETRYABLE_KINDS)
    attempt = 1
    while True:
        try:
            return await op()
        except Exception as e:
            if attempt >= policy.max_attempts or not is_retryable(e):
                raise
            delay = policy.delay_for(attempt, rng=rng)
            logger.info(
                "attempt %d/%d failed (%s), retrying in %.2fs",
                attempt,
                policy.max_attempts,
                type(e).__name__,
                delay,
            )
            await sleep(delay)
            attempt += 1


class RetryingSource(PlaceSource):
    """
    Opt-in auto-retry around a `PlaceSource`.

    The Region Fetcher never retries on its own; wrap the source with this when a deployment
    wants transient failures absorbed.
    """

    def __init__(
        self,
        inner: PlaceSource,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.inner = inner
        self.policy = policy or RetryPolicy()
        self.name = f"retrying({getattr(inner, 'name', 'source')})"
        self._sleep = sleep

    async def fetch_all(self) -> list[dict[str, Any]]:
        return await retry_async(self.inner.fetch_all, self.policy, sleep=self._sleep)
