"""Half-open ledger ranges and their subdivision into submission batches.

A range ``[first, end)`` of ledger sequences is split into consecutive
batches of at most ``batch_size`` ledgers; the last batch may be short.
Each batch is built, submitted and retried on its own.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LedgerRange:
    first: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.first:
            raise ValueError(f"range end {self.end} precedes first {self.first}")

    @classmethod
    def from_count(cls, start: int, count: int) -> LedgerRange:
        return cls(start, start + count)

    @property
    def count(self) -> int:
        return self.end - self.first

    @property
    def last(self) -> int:
        return self.end - 1

    def __contains__(self, seq: object) -> bool:
        return isinstance(seq, int) and self.first <= seq < self.end

    def __str__(self) -> str:
        return f"[{self.first}, {self.end})"


def _chunk_bounds(chunk_idx: int, *, total: int, chunk_size: int) -> tuple[int, int]:
    base = chunk_idx * chunk_size
    end = min(base + chunk_size, total)
    return base, end


def total_batches_for(total: int, *, batch_size: int) -> int:
    return math.ceil(total / max(1, batch_size))


def ledger_batches(span: LedgerRange, *, batch_size: int) -> Iterator[LedgerRange]:
    """Yield the consecutive batches covering ``span`` in ascending order."""

    if batch_size < 1:
        raise ValueError("batch_size must be a positive integer")
    for idx in range(total_batches_for(span.count, batch_size=batch_size)):
        base, end = _chunk_bounds(idx, total=span.count, chunk_size=batch_size)
        yield LedgerRange(span.first + base, span.first + end)


__all__ = ["LedgerRange", "ledger_batches", "total_batches_for"]
