import pytest

from ledger_indexer.batching import LedgerRange, ledger_batches, total_batches_for


def test_range_basics():
    span = LedgerRange.from_count(100, 25)
    assert (span.first, span.end, span.count, span.last) == (100, 125, 25, 124)
    assert 100 in span and 124 in span
    assert 125 not in span and 99 not in span
    assert "100" not in span
    assert str(span) == "[100, 125)"


def test_inverted_range_is_rejected():
    with pytest.raises(ValueError):
        LedgerRange(10, 9)


def test_batches_cover_the_range_with_a_short_tail():
    batches = list(ledger_batches(LedgerRange.from_count(1, 120), batch_size=50))
    assert batches == [LedgerRange(1, 51), LedgerRange(51, 101), LedgerRange(101, 121)]


def test_exact_multiple_and_single_ledger():
    assert [b.count for b in ledger_batches(LedgerRange(10, 30), batch_size=10)] == [10, 10]
    assert list(ledger_batches(LedgerRange(7, 8), batch_size=50)) == [LedgerRange(7, 8)]


def test_empty_range_has_no_batches():
    assert list(ledger_batches(LedgerRange(5, 5), batch_size=3)) == []
    assert total_batches_for(0, batch_size=3) == 0


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        list(ledger_batches(LedgerRange(1, 2), batch_size=0))


@pytest.mark.parametrize(
    ("total", "size", "expected"),
    [(1, 50, 1), (50, 50, 1), (51, 50, 2), (120, 50, 3)],
)
def test_total_batches_for(total, size, expected):
    assert total_batches_for(total, batch_size=size) == expected
