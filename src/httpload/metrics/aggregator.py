from __future__ import annotations

from collections import Counter, defaultdict
from typing import Iterable, Sequence

import numpy as np

from httpload.metrics.models import PerSecondMetrics, ResultSummary, SampleRecord, StepKind

TIMEOUT_ERROR = "timeout"


def percentile(values: Sequence[float], p: float) -> float:
    """Linearly interpolated percentile at rank ``(p / 100) * (n - 1)``.

    Input does not need to be sorted. An empty sequence yields 0.0 since a
    run that completed nothing is a valid outcome.
    """
    if not 0 <= p <= 100:
        msg = f"percentile must be within [0, 100], got {p}"
        raise ValueError(msg)
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), p))


def group_by_kind(samples: Iterable[SampleRecord]) -> dict[StepKind, list[SampleRecord]]:
    groups: dict[StepKind, list[SampleRecord]] = defaultdict(list)
    for sample in samples:
        groups[sample.kind].append(sample)
    return dict(groups)


def summarize(samples: Iterable[SampleRecord], kind: StepKind | None = None) -> ResultSummary:
    subset = [s for s in samples if kind is None or s.kind is kind]
    latencies = np.sort(np.asarray([s.latency_ms for s in subset], dtype=float))
    total = len(subset)
    successful = sum(1 for s in subset if s.ok)

    status_codes = Counter(s.status_code for s in subset if s.status_code is not None)
    errors = Counter(s.error for s in subset if s.error is not None)

    if subset:
        duration = max(s.end for s in subset) - min(s.start for s in subset)
    else:
        duration = 0.0
    rps = total / duration if duration > 0 else 0.0

    return ResultSummary(
        total_requests=total,
        successful_requests=successful,
        failed_requests=total - successful,
        average_latency_ms=float(latencies.mean()) if total else 0.0,
        p50_latency_ms=percentile(latencies, 50),
        p90_latency_ms=percentile(latencies, 90),
        p99_latency_ms=percentile(latencies, 99),
        min_latency_ms=float(latencies[0]) if total else 0.0,
        max_latency_ms=float(latencies[-1]) if total else 0.0,
        requests_per_second=rps,
        total_duration_sec=duration,
        status_codes=dict(sorted(status_codes.items())),
        errors=dict(sorted(errors.items())),
    )


def summarize_by_kind(
    samples: Iterable[SampleRecord],
    kinds: Iterable[StepKind] | None = None,
) -> dict[StepKind, ResultSummary]:
    """One summary per step kind.

    ``kinds`` forces a summary (possibly empty) for each listed kind; without
    it only kinds present in ``samples`` are summarized.
    """
    groups = group_by_kind(samples)
    wanted = list(kinds) if kinds is not None else sorted(groups, key=lambda k: k.value)
    return {kind: summarize(groups.get(kind, [])) for kind in wanted}


def aggregate_per_second(
    samples: Iterable[SampleRecord],
    start_mono: float,
) -> list[PerSecondMetrics]:
    buckets: dict[tuple[StepKind, int], list[SampleRecord]] = defaultdict(list)
    for sample in samples:
        second = max(0, int(sample.end - start_mono))
        buckets[(sample.kind, second)].append(sample)

    metrics: list[PerSecondMetrics] = []
    for (kind, second), bucket in sorted(buckets.items(), key=lambda item: (item[0][0].value, item[0][1])):
        latencies = [s.latency_ms for s in bucket]
        achieved = len(bucket)
        error_count = sum(1 for s in bucket if not s.ok)
        timeout_count = sum(1 for s in bucket if s.error == TIMEOUT_ERROR)
        metrics.append(
            PerSecondMetrics(
                kind=kind,
                second=second,
                achieved_rps=float(achieved),
                p50_ms=percentile(latencies, 50),
                p95_ms=percentile(latencies, 95),
                p99_ms=percentile(latencies, 99),
                error_rate=error_count / achieved,
                timeout_rate=timeout_count / achieved,
            )
        )
    return metrics
