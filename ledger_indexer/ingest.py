"""Ingest pipeline: index newly closed ledgers one at a time.

Ledgers arrive as an ordered iterable (typically
``SqlLedgerSource.follow``). Each one is built and submitted on its own, with
the same retry discipline as export. Sequence numbers must be strictly
consecutive; anything else (a skipped ledger, a repeat, a regression) stops
the pipeline with :class:`LedgerGapError`. Filling the gap is left to the
``fill-gaps`` command.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .batching import LedgerRange
from .bulk import BulkMaker
from .logging_setup import get_logger
from .rows import LedgerRecord
from .sink import IndexSink
from .submission import DEFAULT_RETRIES, RetryPolicy, submit_with_retries

logger = get_logger("ledger_indexer.ingest")


class LedgerGapError(RuntimeError):
    """Raised when a ledger arrives out of sequence."""

    def __init__(self, expected: int, got: int) -> None:
        self.expected = expected
        self.got = got
        if got > expected:
            self.missing: LedgerRange | None = LedgerRange(expected, got)
            msg = f"ledger gap: expected {expected}, got {got}; missing {self.missing}"
        else:
            self.missing = None
            msg = f"ledger out of order: expected {expected}, got {got}"
        super().__init__(msg)


@dataclass(frozen=True, slots=True)
class IngestConfig:
    start: int | None = None
    retries: int = DEFAULT_RETRIES

    def __post_init__(self) -> None:
        if self.start is not None and self.start < 1:
            raise ValueError("start must be a positive ledger sequence")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")


@dataclass(slots=True)
class IngestResult:
    ledgers: int = 0
    documents: int = 0
    submissions: int = 0
    last_seq: int | None = None


class IngestPipeline:
    def __init__(
        self,
        sink: IndexSink,
        config: IngestConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.sink = sink
        self.config = config
        self.policy = RetryPolicy(retries=config.retries)
        self._sleep = sleep
        self._rng = rng

    def run(self, ledgers: Iterable[LedgerRecord]) -> IngestResult:
        result = IngestResult()
        expected = self.config.start
        logger.info("ingest:start start=%s", expected if expected is not None else "first")

        for record in ledgers:
            if expected is not None and record.seq != expected:
                logger.error("ingest:gap expected=%d got=%d", expected, record.seq)
                raise LedgerGapError(expected, record.seq)

            t0 = time.perf_counter()
            built = BulkMaker(record).build()
            attempts = submit_with_retries(
                self.sink,
                built.payload,
                policy=self.policy,
                label=f"ledger {record.seq}",
                sleep=self._sleep,
                rng=self._rng,
            )
            dt_ms = (time.perf_counter() - t0) * 1000.0

            result.ledgers += 1
            result.documents += built.documents
            result.submissions += attempts
            result.last_seq = record.seq
            expected = record.seq + 1
            logger.info(
                "ingest:ledger_indexed seq=%d documents=%d attempts=%d latency_ms=%.2f",
                record.seq,
                built.documents,
                attempts,
                dt_ms,
            )

        logger.info("ingest:stopped ledgers=%d last_seq=%s", result.ledgers, result.last_seq)
        return result


__all__ = ["IngestConfig", "IngestPipeline", "IngestResult", "LedgerGapError"]
