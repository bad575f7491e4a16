from __future__ import annotations

import random

import pytest
from hypothesis import given, strategies as st

from httpload.metrics import (
    SampleRecord,
    StepKind,
    aggregate_per_second,
    group_by_kind,
    summarize,
    summarize_by_kind,
)


def _sample(
    start: float,
    latency_ms: float,
    status_code: int | None = 200,
    error: str | None = None,
    kind: StepKind = StepKind.REQUEST,
) -> SampleRecord:
    ok = status_code is not None and 200 <= status_code < 400
    return SampleRecord(
        kind=kind,
        start=start,
        end=start + latency_ms / 1000.0,
        wall_time=1_700_000_000.0 + start,
        latency_ms=latency_ms,
        ok=ok,
        status_code=status_code,
        error=error,
        response_size=10 if status_code is not None else None,
    )


samples_strategy = st.lists(
    st.builds(
        _sample,
        start=st.floats(min_value=0.0, max_value=100.0),
        latency_ms=st.floats(min_value=0.0, max_value=5000.0),
        status_code=st.sampled_from([200, 201, 302, 404, 500, None]),
        error=st.sampled_from([None, "timeout"]),
    ),
    max_size=60,
)


def test_empty_summary_is_all_zero() -> None:
    summary = summarize([])
    assert summary.total_requests == 0
    assert summary.successful_requests == 0
    assert summary.failed_requests == 0
    assert summary.average_latency_ms == 0.0
    assert summary.p50_latency_ms == summary.p90_latency_ms == summary.p99_latency_ms == 0.0
    assert summary.min_latency_ms == summary.max_latency_ms == 0.0
    assert summary.total_duration_sec == 0.0
    assert summary.requests_per_second == 0.0
    assert summary.status_codes == {}
    assert summary.errors == {}


def test_summary_counts_and_histograms() -> None:
    samples = [
        _sample(0.0, 100.0, 200),
        _sample(0.1, 200.0, 200),
        _sample(0.2, 300.0, 500),
        _sample(0.3, 400.0, None, "timeout"),
        _sample(0.4, 500.0, None, "connection refused"),
    ]
    summary = summarize(samples)
    assert summary.total_requests == 5
    assert summary.successful_requests == 2
    assert summary.failed_requests == 3
    assert summary.average_latency_ms == pytest.approx(300.0)
    assert summary.min_latency_ms == 100.0
    assert summary.max_latency_ms == 500.0
    assert summary.p50_latency_ms == pytest.approx(300.0)
    assert summary.status_codes == {200: 2, 500: 1}
    assert summary.errors == {"connection refused": 1, "timeout": 1}
    # earliest start 0.0, latest end 0.4 + 0.5
    assert summary.total_duration_sec == pytest.approx(0.9)
    assert summary.requests_per_second == pytest.approx(5 / 0.9)


def test_redirect_counts_as_success() -> None:
    summary = summarize([_sample(0.0, 5.0, 302), _sample(0.0, 5.0, 199)])
    assert summary.successful_requests == 1
    assert summary.status_codes == {199: 1, 302: 1}


@given(samples=samples_strategy)
def test_success_plus_failure_equals_total(samples: list[SampleRecord]) -> None:
    summary = summarize(samples)
    assert summary.successful_requests + summary.failed_requests == summary.total_requests


@given(samples=samples_strategy)
def test_histograms_never_hold_zero_entries(samples: list[SampleRecord]) -> None:
    summary = summarize(samples)
    assert all(count > 0 for count in summary.status_codes.values())
    assert all(count > 0 for count in summary.errors.values())


@given(samples=samples_strategy, seed=st.integers(min_value=0, max_value=10_000))
def test_aggregation_is_order_independent(samples: list[SampleRecord], seed: int) -> None:
    shuffled = list(samples)
    random.Random(seed).shuffle(shuffled)
    assert summarize(shuffled) == summarize(samples)


def test_filter_by_kind() -> None:
    samples = [
        _sample(0.0, 10.0, 201, kind=StepKind.CREATE),
        _sample(0.1, 20.0, 200, kind=StepKind.MESSAGE),
        _sample(0.2, 30.0, 500, kind=StepKind.MESSAGE),
    ]
    create = summarize(samples, StepKind.CREATE)
    message = summarize(samples, StepKind.MESSAGE)
    assert create.total_requests == 1
    assert message.total_requests == 2
    assert message.failed_requests == 1
    assert set(group_by_kind(samples)) == {StepKind.CREATE, StepKind.MESSAGE}


def test_summarize_by_kind_reports_requested_kinds_even_when_empty() -> None:
    samples = [_sample(0.0, 10.0, 500, kind=StepKind.CREATE)]
    summaries = summarize_by_kind(samples, [StepKind.CREATE, StepKind.MESSAGE])
    assert summaries[StepKind.CREATE].total_requests == 1
    assert summaries[StepKind.MESSAGE].total_requests == 0

    present_only = summarize_by_kind(samples)
    assert list(present_only) == [StepKind.CREATE]


def test_aggregate_per_second_buckets_by_end_time() -> None:
    samples = [
        _sample(0.0, 100.0, 200),
        _sample(0.5, 100.0, None, "timeout"),
        _sample(1.2, 100.0, 200),
    ]
    metrics = aggregate_per_second(samples, start_mono=0.0)
    assert [m.second for m in metrics] == [0, 1]
    first, second = metrics
    assert first.achieved_rps == 2.0
    assert first.error_rate == pytest.approx(0.5)
    assert first.timeout_rate == pytest.approx(0.5)
    assert second.achieved_rps == 1.0
    assert second.error_rate == 0.0
