import random

import pytest

from ledger_indexer.submission import (
    BACKOFF_MAX_SEC,
    BACKOFF_MIN_SEC,
    RetriesExhaustedError,
    RetryPolicy,
    submit_with_retries,
)

from tests.helpers.sink_stub import NoSleep, RecordingSink


def test_first_attempt_accepted_does_not_sleep():
    sink = RecordingSink([True])
    sleep = NoSleep()
    attempts = submit_with_retries(sink, "payload\n", policy=RetryPolicy(retries=3), sleep=sleep)
    assert attempts == 1
    assert sink.calls == ["payload\n"]
    assert sleep.delays == []


def test_rejections_are_retried_with_the_identical_buffer():
    sink = RecordingSink([False, False, True])
    sleep = NoSleep()
    retried: list[int] = []
    attempts = submit_with_retries(
        sink,
        "same\n",
        policy=RetryPolicy(retries=5),
        sleep=sleep,
        rng=random.Random(7),
        on_retry=retried.append,
    )
    assert attempts == 3
    assert sink.calls == ["same\n"] * 3
    assert retried == [1, 2]
    assert len(sleep.delays) == 2
    assert all(BACKOFF_MIN_SEC <= d <= BACKOFF_MAX_SEC for d in sleep.delays)


def test_exhaustion_makes_exactly_retries_plus_one_calls():
    sink = RecordingSink([False])
    sleep = NoSleep()
    with pytest.raises(RetriesExhaustedError) as excinfo:
        submit_with_retries(
            sink, "x\n", policy=RetryPolicy(retries=4), label="[1, 51)", sleep=sleep
        )
    assert len(sink.calls) == 5
    assert len(sleep.delays) == 4
    assert excinfo.value.attempts == 5
    assert excinfo.value.label == "[1, 51)"
    assert "[1, 51)" in str(excinfo.value)


def test_zero_retries_means_a_single_attempt():
    sink = RecordingSink([False])
    with pytest.raises(RetriesExhaustedError):
        submit_with_retries(sink, "x\n", policy=RetryPolicy(retries=0), sleep=NoSleep())
    assert len(sink.calls) == 1


def test_sink_exceptions_count_as_failed_attempts():
    class Exploding:
        calls = 0

        def bulk_insert(self, payload: str) -> bool:
            self.calls += 1
            raise OSError("connection refused")

    sink = Exploding()
    sleep = NoSleep()
    with pytest.raises(RetriesExhaustedError) as excinfo:
        submit_with_retries(sink, "x\n", policy=RetryPolicy(retries=3), sleep=sleep)
    assert sink.calls == 4
    assert len(sleep.delays) == 3
    assert excinfo.value.attempts == 4
    assert isinstance(excinfo.value.__cause__, OSError)


def test_sink_exception_then_acceptance():
    answers: list[object] = [ConnectionResetError("reset"), True]

    class Flaky:
        def bulk_insert(self, payload: str) -> bool:
            answer = answers.pop(0)
            if isinstance(answer, Exception):
                raise answer
            return bool(answer)

    sleep = NoSleep()
    attempts = submit_with_retries(Flaky(), "x\n", policy=RetryPolicy(retries=2), sleep=sleep)
    assert attempts == 2
    assert len(sleep.delays) == 1


@pytest.mark.parametrize(
    "kwargs",
    [{"retries": -1}, {"min_delay": 5.0, "max_delay": 1.0}, {"min_delay": -1.0}],
)
def test_invalid_policy(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)
