import pytest

from ledger_indexer.batching import LedgerRange
from ledger_indexer.gaps import fill_gaps, find_gaps

from tests.helpers.ledgers import MemorySource
from tests.helpers.sink_stub import NoSleep, RecordingSink, parse_bulk


@pytest.mark.parametrize(
    ("present", "expected"),
    [
        ([], [LedgerRange(1, 11)]),
        (range(1, 11), []),
        ([1, 2, 5, 6, 10], [LedgerRange(3, 5), LedgerRange(7, 10)]),
        ([10, 1, 1, 3], [LedgerRange(2, 3), LedgerRange(4, 10)]),
        ([0, 11, 500], [LedgerRange(1, 11)]),
        ([2, 3, 4, 5, 6, 7, 8, 9, 10], [LedgerRange(1, 2)]),
    ],
)
def test_find_gaps(present, expected):
    assert find_gaps(present, LedgerRange(1, 11)) == expected


def test_fill_gaps_exports_only_the_missing_ledgers():
    source = MemorySource.of_range(1, 21)
    sink = RecordingSink()
    report = fill_gaps(
        source,
        sink,
        LedgerRange(1, 21),
        present=[s for s in range(1, 21) if s not in (4, 5, 17)],
        batch_size=50,
        sleep=NoSleep(),
    )
    assert report.gaps == [LedgerRange(4, 6), LedgerRange(17, 18)]
    assert report.missing == 3
    assert source.requests == [(4, 6), (17, 18)]
    seqs = [doc["seq"] for payload in sink.calls for _, doc in parse_bulk(payload)]
    assert seqs == [4, 5, 17]
    assert [r.ledgers for r in report.results] == [2, 1]


def test_fill_gaps_dry_run_only_reports():
    source = MemorySource.of_range(1, 11)
    sink = RecordingSink()
    report = fill_gaps(source, sink, LedgerRange(1, 11), present=[1, 2, 3], dry_run=True)
    assert report.gaps == [LedgerRange(4, 11)]
    assert report.missing == 7
    assert report.results == []
    assert source.requests == []
    assert sink.calls == []


def test_nothing_missing_does_nothing():
    sink = RecordingSink()
    report = fill_gaps(MemorySource([]), sink, LedgerRange(1, 4), present=[1, 2, 3])
    assert report.gaps == [] and report.missing == 0
    assert sink.calls == []
