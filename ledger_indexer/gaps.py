"""Find ledgers missing from the index and re-export them."""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from .batching import LedgerRange
from .db.ledgers import LedgerSource
from .export import DEFAULT_BATCH_SIZE, ExportConfig, ExportPipeline, ExportResult
from .logging_setup import get_logger
from .sink import IndexSink
from .submission import DEFAULT_RETRIES

logger = get_logger("ledger_indexer.gaps")


def find_gaps(present: Iterable[int], span: LedgerRange) -> list[LedgerRange]:
    """Return the maximal sub-ranges of ``span`` containing no ``present`` sequence.

    ``present`` may be unsorted, contain duplicates or values outside ``span``.
    """

    gaps: list[LedgerRange] = []
    cursor = span.first
    for seq in sorted({s for s in present if s in span}):
        if seq > cursor:
            gaps.append(LedgerRange(cursor, seq))
        cursor = seq + 1
    if cursor < span.end:
        gaps.append(LedgerRange(cursor, span.end))
    return gaps


@dataclass(slots=True)
class GapFillReport:
    gaps: list[LedgerRange]
    results: list[ExportResult] = field(default_factory=list)

    @property
    def missing(self) -> int:
        return sum(g.count for g in self.gaps)


def fill_gaps(
    source: LedgerSource,
    sink: IndexSink,
    span: LedgerRange,
    *,
    present: Iterable[int],
    batch_size: int = DEFAULT_BATCH_SIZE,
    retries: int = DEFAULT_RETRIES,
    concurrency: int = 1,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> GapFillReport:
    """Run an export over every gap of ``span``; on ``dry_run`` only report them."""

    report = GapFillReport(gaps=find_gaps(present, span))
    logger.info(
        "gaps:found range=%s gaps=%d missing=%d dry_run=%s",
        span,
        len(report.gaps),
        report.missing,
        dry_run,
    )
    if dry_run:
        for gap in report.gaps:
            logger.info("gaps:gap range=%s ledgers=%d", gap, gap.count)
        return report

    for gap in report.gaps:
        config = ExportConfig(
            start=gap.first,
            count=gap.count,
            batch_size=batch_size,
            retries=retries,
            concurrency=concurrency,
        )
        result = ExportPipeline(source, sink, config, sleep=sleep, rng=rng).run()
        report.results.append(result)
        logger.info("gaps:filled range=%s ledgers=%d", gap, result.ledgers)
    return report


__all__ = ["GapFillReport", "fill_gaps", "find_gaps"]
