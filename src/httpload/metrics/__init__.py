from __future__ import annotations

from httpload.metrics.aggregator import (
    TIMEOUT_ERROR,
    aggregate_per_second,
    group_by_kind,
    percentile,
    summarize,
    summarize_by_kind,
)
from httpload.metrics.models import PerSecondMetrics, ResultSummary, SampleRecord, StepKind

__all__ = [
    "TIMEOUT_ERROR",
    "PerSecondMetrics",
    "ResultSummary",
    "SampleRecord",
    "StepKind",
    "aggregate_per_second",
    "group_by_kind",
    "percentile",
    "summarize",
    "summarize_by_kind",
]
