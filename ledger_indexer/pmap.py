"""A small ordered worker pool over ThreadPoolExecutor, in the spirit of `p-map`.

Goals
-----
- One call: ``p_map_ordered(iterable, mapper, concurrency=N)``.
- Hide ``ThreadPoolExecutor`` mechanics (submission window, shutdown, cancels).
- Run up to ``concurrency`` mapper calls at once while yielding results in
  input order, so a consumer can append them to an ordered buffer as soon as
  the head of the window is ready.

Non-goals
---------
- Unordered completion streaming.
- Abort/timeout control.
- Process pools.

The first mapper error propagates to the consumer at the position of the
failing item; not-yet-started work is cancelled.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map_ordered(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
) -> Iterator[OutT]:
    """Map ``iterable`` through ``mapper`` with bounded concurrency, in order.

    The input is consumed lazily: at most ``concurrency`` items are in flight
    and the iterable is never materialized up front.
    """

    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")
    return _ordered(iter(iterable), mapper, concurrency)


def _ordered(
    it: Iterator[InT], mapper: Callable[[InT], OutT], concurrency: int
) -> Iterator[OutT]:
    window: deque[Future[OutT]] = deque()
    pool = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="ledger-build")

    def _submit() -> bool:
        try:
            item = next(it)
        except StopIteration:
            return False
        window.append(pool.submit(mapper, item))
        return True

    try:
        # Prime the window
        for _ in range(concurrency):
            if not _submit():
                break

        while window:
            head = window.popleft()
            value = head.result()
            # Top up before handing the value out so workers stay busy.
            _submit()
            yield value
    finally:
        # Runs on exhaustion, on error and when the consumer closes early.
        pool.shutdown(wait=True, cancel_futures=True)


__all__ = ["p_map_ordered"]
