from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class StepKind(str, Enum):
    REQUEST = "request"
    CREATE = "create"
    MESSAGE = "message"


@dataclass(frozen=True, slots=True)
class SampleRecord:
    kind: StepKind
    start: float
    end: float
    wall_time: float
    latency_ms: float
    ok: bool
    status_code: int | None = None
    error: str | None = None
    response_size: int | None = None

    @property
    def latency_sec(self) -> float:
        return self.latency_ms / 1000.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True, slots=True)
class ResultSummary:
    total_requests: int
    successful_requests: int
    failed_requests: int
    average_latency_ms: float
    p50_latency_ms: float
    p90_latency_ms: float
    p99_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    requests_per_second: float
    total_duration_sec: float
    status_codes: dict[int, int] = field(default_factory=dict)
    errors: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "successfulRequests": self.successful_requests,
            "failedRequests": self.failed_requests,
            "averageLatency": self.average_latency_ms,
            "p50Latency": self.p50_latency_ms,
            "p90Latency": self.p90_latency_ms,
            "p99Latency": self.p99_latency_ms,
            "minLatency": self.min_latency_ms,
            "maxLatency": self.max_latency_ms,
            "requestsPerSecond": self.requests_per_second,
            "statusCodes": {str(code): count for code, count in self.status_codes.items()},
            "errors": dict(self.errors),
            "totalDuration": self.total_duration_sec,
        }


@dataclass(frozen=True, slots=True)
class PerSecondMetrics:
    kind: StepKind
    second: int
    achieved_rps: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    error_rate: float
    timeout_rate: float
