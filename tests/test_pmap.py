import threading
import time

import pytest

from ledger_indexer.pmap import p_map_ordered


def test_results_keep_input_order_despite_uneven_work():
    def slow_for_small(n: int) -> int:
        time.sleep(0.002 * (10 - n))
        return n * n

    assert list(p_map_ordered(range(10), slow_for_small, concurrency=4)) == [
        n * n for n in range(10)
    ]


def test_concurrency_is_bounded():
    active = 0
    peak = 0
    lock = threading.Lock()

    def work(n: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.005)
        with lock:
            active -= 1
        return n

    assert list(p_map_ordered(range(20), work, concurrency=3)) == list(range(20))
    assert 1 <= peak <= 3


def test_input_is_consumed_lazily():
    pulled: list[int] = []

    def source():
        for n in range(100):
            pulled.append(n)
            yield n

    results = p_map_ordered(source(), lambda n: n, concurrency=2)
    assert pulled == []
    assert next(results) == 0
    assert len(pulled) <= 3
    results.close()


def test_mapper_error_propagates_at_its_position():
    def boom_on_three(n: int) -> int:
        if n == 3:
            raise RuntimeError("boom")
        return n

    seen: list[int] = []
    with pytest.raises(RuntimeError, match="boom"):
        for value in p_map_ordered(range(10), boom_on_three, concurrency=2):
            seen.append(value)
    assert seen == [0, 1, 2]


def test_empty_input():
    assert list(p_map_ordered([], lambda n: n, concurrency=5)) == []


@pytest.mark.parametrize("concurrency", [0, -1, 1.5])
def test_invalid_concurrency_is_rejected(concurrency):
    with pytest.raises(ValueError):
        p_map_ordered([1], lambda n: n, concurrency=concurrency)
