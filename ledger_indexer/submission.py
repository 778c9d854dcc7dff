"""Bulk submission with bounded retries and randomized backoff.

A submission is one ``IndexSink.bulk_insert`` call for one buffer. A call
that is rejected or raises is retried with the identical buffer after a
random delay in ``[min_delay, max_delay]`` seconds, at most ``retries``
times; after that :class:`RetriesExhaustedError` is raised. Re-submitting is
safe because every document carries a stable id, so a repeat overwrites
rather than duplicates.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from .logging_setup import get_logger
from .sink import IndexSink

logger = get_logger("ledger_indexer.submission")

DEFAULT_RETRIES = 25
BACKOFF_MIN_SEC = 5.0
BACKOFF_MAX_SEC = 15.0


class RetriesExhaustedError(RuntimeError):
    """Raised when a buffer is still rejected after the last allowed retry."""

    def __init__(self, label: str, attempts: int) -> None:
        super().__init__(f"bulk submission of {label} failed after {attempts} attempts")
        self.label = label
        self.attempts = attempts


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    retries: int = DEFAULT_RETRIES
    min_delay: float = BACKOFF_MIN_SEC
    max_delay: float = BACKOFF_MAX_SEC

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if not 0 <= self.min_delay <= self.max_delay:
            raise ValueError("backoff bounds must satisfy 0 <= min_delay <= max_delay")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


def _backoff_delay(policy: RetryPolicy, rng: random.Random) -> float:
    return rng.uniform(policy.min_delay, policy.max_delay)


def submit_with_retries(
    sink: IndexSink,
    payload: str,
    *,
    policy: RetryPolicy,
    label: str = "buffer",
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
    on_retry: Callable[[int], None] | None = None,
) -> int:
    """Submit ``payload`` until the sink accepts it; return the attempt count.

    A call that returns ``False`` and a call that raises both count as a
    failed attempt. ``on_retry`` is called with the failed attempt number
    before each backoff sleep. The last sink exception, if any, is chained to
    :class:`RetriesExhaustedError`.
    """

    rng = rng or random.Random()
    attempt = 1
    while True:
        t0 = time.perf_counter()
        error: Exception | None = None
        try:
            accepted = sink.bulk_insert(payload)
        except Exception as e:  # noqa: BLE001
            accepted = False
            error = e
        dt_ms = (time.perf_counter() - t0) * 1000.0
        if accepted:
            logger.debug(
                "submission:accepted label=%s attempt=%d latency_ms=%.2f", label, attempt, dt_ms
            )
            return attempt
        failure = error.__class__.__name__ if error is not None else "rejected"
        if attempt >= policy.max_attempts:
            logger.error(
                "submission:failed_terminal label=%s attempts=%d bytes=%d error=%s",
                label,
                attempt,
                len(payload),
                failure,
            )
            raise RetriesExhaustedError(label, attempt) from error
        delay = _backoff_delay(policy, rng)
        logger.warning(
            "submission:retry label=%s attempt=%d latency_ms=%.2f delay_s=%.1f error=%s",
            label,
            attempt,
            dt_ms,
            delay,
            failure,
        )
        if on_retry is not None:
            on_retry(attempt)
        sleep(delay)
        attempt += 1


__all__ = [
    "BACKOFF_MAX_SEC",
    "BACKOFF_MIN_SEC",
    "DEFAULT_RETRIES",
    "RetriesExhaustedError",
    "RetryPolicy",
    "submit_with_retries",
]
