"""Export pipeline: index a closed range of historical ledgers.

State machine::

    configured -> streaming -> (submitting <-> retrying) -> done
                      |               |
                      +-------------> failed

The range ``[start, start + count)`` is split into batches of
``batch_size`` ledgers. Each batch is pulled from the ledger source, every
ledger is built concurrently on a bounded pool, the results are appended to
one buffer in ledger order, and the buffer is submitted (and retried) as a
unit. Records the source yields outside the batch bounds are discarded.
"""

from __future__ import annotations

import io
import random
import re
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum

from .batching import LedgerRange, ledger_batches, total_batches_for
from .bulk import BulkMaker, LedgerBulk
from .config import DEFAULT_CONCURRENCY
from .db.ledgers import LedgerSource
from .logging_setup import get_logger
from .pmap import p_map_ordered
from .rows import LedgerRecord
from .sink import IndexSink
from .submission import DEFAULT_RETRIES, RetryPolicy, submit_with_retries

logger = get_logger("ledger_indexer.export")

DEFAULT_BATCH_SIZE = 50


class ExportRangeError(ValueError):
    """Raised for an empty or unresolvable export range, before any I/O."""


# ---------------------------------------------------------------------------
# Start ledger: signed numbers
# ---------------------------------------------------------------------------

_SIGNED_RE = re.compile(r"^\s*([+-]?)(\d+)\s*$")


@dataclass(frozen=True, slots=True)
class SignedNumber:
    """A number that remembers whether it was written with an explicit sign.

    ``+N`` is an offset from the first known ledger, ``-N`` an offset back
    from the last known ledger (``-1`` is the last), an unsigned non-zero
    value an absolute sequence and ``0`` the first known ledger.
    """

    value: int
    explicit: bool = False

    @classmethod
    def parse(cls, text: str) -> SignedNumber:
        m = _SIGNED_RE.match(text)
        if m is None:
            raise ExportRangeError(f"invalid ledger number: {text!r}")
        sign, digits = m.groups()
        value = -int(digits) if sign == "-" else int(digits)
        return cls(value=value, explicit=bool(sign))

    def __str__(self) -> str:
        if self.explicit and self.value >= 0:
            return f"+{self.value}"
        return str(self.value)


def resolve_start(start: SignedNumber, *, first: int | None, last: int | None) -> int:
    """Turn a signed start into an absolute ledger sequence."""

    if start.explicit or start.value == 0:
        if first is None or last is None:
            raise ExportRangeError(
                f"cannot resolve relative start {start}: no ledgers in the database"
            )
        if start.value < 0:
            seq = last + start.value + 1
        else:
            seq = first + start.value
    else:
        seq = start.value
    if seq < 1:
        raise ExportRangeError(f"start {start} resolves to ledger {seq}, before the first ledger")
    return seq


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ExportState(StrEnum):
    CONFIGURED = "configured"
    STREAMING = "streaming"
    SUBMITTING = "submitting"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ExportConfig:
    start: int
    count: int
    batch_size: int = DEFAULT_BATCH_SIZE
    retries: int = DEFAULT_RETRIES
    concurrency: int = DEFAULT_CONCURRENCY
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.concurrency < 1:
            raise ValueError("concurrency must be a positive integer")

    def span(self) -> LedgerRange:
        if self.count <= 0:
            raise ExportRangeError(
                f"nothing to export: count={self.count} for start={self.start}"
            )
        if self.start < 1:
            raise ExportRangeError(f"start must be a positive ledger sequence, got {self.start}")
        return LedgerRange.from_count(self.start, self.count)


@dataclass(frozen=True, slots=True)
class ExportResult:
    ledgers: int
    documents: int
    batches: int
    submissions: int


def _build(record: LedgerRecord) -> LedgerBulk:
    return BulkMaker(record).build()


class ExportPipeline:
    def __init__(
        self,
        source: LedgerSource,
        sink: IndexSink,
        config: ExportConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.config = config
        self.policy = RetryPolicy(retries=config.retries)
        self._sleep = sleep
        self._rng = rng
        self.state = ExportState.CONFIGURED

    def _transition(self, state: ExportState) -> None:
        logger.debug("export:state from=%s to=%s", self.state, state)
        self.state = state

    def _in_range(
        self, records: Iterable[LedgerRecord], batch: LedgerRange
    ) -> Iterator[LedgerRecord]:
        for record in records:
            if record.seq not in batch:
                logger.warning("export:discard_out_of_range seq=%d batch=%s", record.seq, batch)
                continue
            yield record

    def run(self) -> ExportResult:
        try:
            return self._run()
        except Exception:
            self._transition(ExportState.FAILED)
            raise

    def _run(self) -> ExportResult:
        cfg = self.config
        span = cfg.span()
        n_batches = total_batches_for(span.count, batch_size=cfg.batch_size)
        logger.info(
            "export:start first=%d end=%d ledgers=%d batches=%d dry_run=%s",
            span.first,
            span.end,
            span.count,
            n_batches,
            cfg.dry_run,
        )

        ledgers = documents = batches = submissions = 0
        for batch_no, batch in enumerate(ledger_batches(span, batch_size=cfg.batch_size), 1):
            self._transition(ExportState.STREAMING)
            t0 = time.perf_counter()
            buffer = io.StringIO()
            batch_ledgers = batch_documents = 0
            records = self._in_range(self.source.stream(batch.first, batch.end), batch)
            for built in p_map_ordered(records, _build, concurrency=cfg.concurrency):
                buffer.write(built.payload)
                batch_ledgers += 1
                batch_documents += built.documents

            ledgers += batch_ledgers
            documents += batch_documents
            batches += 1
            if batch_ledgers < batch.count:
                logger.warning(
                    "export:batch_incomplete batch=%d/%d range=%s ledgers=%d",
                    batch_no,
                    n_batches,
                    batch,
                    batch_ledgers,
                )
            if batch_ledgers == 0:
                continue
            if cfg.dry_run:
                logger.info(
                    "export:batch_built batch=%d/%d ledgers=%d documents=%d bytes=%d",
                    batch_no,
                    n_batches,
                    batch_ledgers,
                    batch_documents,
                    buffer.tell(),
                )
                logger.debug(
                    "export:dry_run_payload batch=%d/%d\n%s", batch_no, n_batches, buffer.getvalue()
                )
                continue

            self._transition(ExportState.SUBMITTING)
            attempts = submit_with_retries(
                self.sink,
                buffer.getvalue(),
                policy=self.policy,
                label=f"batch {batch_no}/{n_batches} {batch}",
                sleep=self._sleep,
                rng=self._rng,
                on_retry=lambda _attempt: self._transition(ExportState.RETRYING),
            )
            submissions += attempts
            dt_ms = (time.perf_counter() - t0) * 1000.0
            logger.info(
                "export:batch_submitted batch=%d/%d ledgers=%d documents=%d attempts=%d "
                "latency_ms=%.2f",
                batch_no,
                n_batches,
                batch_ledgers,
                batch_documents,
                attempts,
                dt_ms,
            )

        self._transition(ExportState.DONE)
        result = ExportResult(
            ledgers=ledgers, documents=documents, batches=batches, submissions=submissions
        )
        logger.info(
            "export:done ledgers=%d documents=%d batches=%d submissions=%d",
            result.ledgers,
            result.documents,
            result.batches,
            result.submissions,
        )
        return result


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "ExportConfig",
    "ExportPipeline",
    "ExportRangeError",
    "ExportResult",
    "ExportState",
    "SignedNumber",
    "resolve_start",
]
