from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from chopper.metrics import Aggregate, RequestOutcome, ResultCollector


def _collector(times_ns: list[int], status: int = 200) -> ResultCollector:
    collector = ResultCollector()
    for t in times_ns:
        collector.observe(RequestOutcome(status_code=status, response_time_ns=t))
    return collector


def test_empty_collector_reports_no_data() -> None:
    collector = ResultCollector()
    assert collector.is_empty
    assert collector.total == 0
    assert collector.aggregate(1.0) is None
    assert collector.aggregate(0.0) is None


@given(
    times=st.lists(st.integers(min_value=1, max_value=10**10), min_size=1, max_size=200),
    duration=st.floats(min_value=0.001, max_value=10_000.0, allow_nan=False, allow_infinity=False),
)
def test_aggregate_bounds_and_throughput(times: list[int], duration: float) -> None:
    agg = _collector(times).aggregate(duration)
    assert agg is not None
    assert agg.total_requests == len(times)
    assert agg.fastest_ns <= agg.average_ns <= agg.slowest_ns
    assert all(agg.fastest_ns <= t <= agg.slowest_ns for t in times)
    assert agg.fastest_ns == min(times)
    assert agg.slowest_ns == max(times)
    assert agg.requests_per_second == len(times) / duration


@given(times=st.lists(st.integers(min_value=1, max_value=10**9), min_size=1, max_size=50))
def test_aggregate_is_idempotent(times: list[int]) -> None:
    collector = _collector(times)
    first = collector.aggregate(2.5)
    second = collector.aggregate(2.5)
    assert first == second
    assert collector.total == len(times)


def test_average_uses_integer_mean() -> None:
    agg = _collector([1, 2]).aggregate(1.0)
    assert agg is not None
    assert agg.average_ns == 1
    assert agg.average_ms == pytest.approx(1e-6)


def test_status_counts_and_rounding() -> None:
    collector = _collector([1_000_000, 3_000_000], status=200)
    collector.observe(RequestOutcome(status_code=404, response_time_ns=2_000_000))
    agg = collector.aggregate(0.7)
    assert isinstance(agg, Aggregate)
    assert agg.status_counts == {200: 2, 404: 1}
    assert agg.fastest_ms == 1.0
    assert agg.slowest_ms == 3.0
    assert agg.average_ms == 2.0
    assert agg.requests_per_second == 3 / 0.7
    assert agg.rounded_rps == 4.29


def test_outcomes_keep_expected_status_reference() -> None:
    collector = _collector([5], status=500)
    (outcome,) = collector.outcomes
    assert outcome.status_code == 500
    assert outcome.expected_status_code == 200


def test_non_positive_duration_with_data_is_rejected() -> None:
    collector = _collector([10])
    with pytest.raises(ValueError):
        collector.aggregate(0.0)
