from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path
from typing import Iterable

import duckdb
import pandas as pd

from httpload.config import RunConfig, ScenarioConfig
from httpload.loadgen.runner import RunResult
from httpload.metrics import PerSecondMetrics


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_meta (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    mode TEXT,
                    config_json TEXT,
                    elapsed_sec DOUBLE,
                    notes TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS samples (
                    run_id TEXT,
                    kind TEXT,
                    wall_time DOUBLE,
                    start_mono DOUBLE,
                    end_mono DOUBLE,
                    latency_ms DOUBLE,
                    ok BOOLEAN,
                    status_code INTEGER,
                    error TEXT,
                    response_size INTEGER
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS summaries (
                    run_id TEXT,
                    kind TEXT,
                    total_requests INTEGER,
                    successful_requests INTEGER,
                    failed_requests INTEGER,
                    average_latency_ms DOUBLE,
                    p50_latency_ms DOUBLE,
                    p90_latency_ms DOUBLE,
                    p99_latency_ms DOUBLE,
                    min_latency_ms DOUBLE,
                    max_latency_ms DOUBLE,
                    requests_per_second DOUBLE,
                    total_duration_sec DOUBLE,
                    status_codes_json TEXT,
                    errors_json TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS per_second (
                    run_id TEXT,
                    kind TEXT,
                    second INTEGER,
                    achieved_rps DOUBLE,
                    p50_ms DOUBLE,
                    p95_ms DOUBLE,
                    p99_ms DOUBLE,
                    error_rate DOUBLE,
                    timeout_rate DOUBLE
                );
                """
            )

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_run(
        self,
        config: RunConfig | ScenarioConfig,
        result: RunResult,
        per_second: Iterable[PerSecondMetrics] = (),
    ) -> None:
        if self.run_exists(result.run_id):
            msg = f"Run {result.run_id} already exists"
            raise ValueError(msg)
        run_id = result.run_id
        config_json = json.dumps(config.to_metadata())
        # TIMESTAMP columns are naive UTC
        created_at = result.started_at.astimezone(timezone.utc).replace(tzinfo=None)
        with self._connect() as con:
            con.execute(
                "INSERT INTO run_meta VALUES (?, ?, ?, ?, ?, ?)",
                [run_id, created_at, result.mode, config_json, result.elapsed_sec, config.notes],
            )
            samples_df = pd.DataFrame(
                [
                    {
                        "run_id": run_id,
                        "kind": s.kind.value,
                        "wall_time": s.wall_time,
                        "start_mono": s.start,
                        "end_mono": s.end,
                        "latency_ms": s.latency_ms,
                        "ok": s.ok,
                        "status_code": s.status_code,
                        "error": s.error,
                        "response_size": s.response_size,
                    }
                    for s in result.samples
                ]
            )
            if not samples_df.empty:
                # nullable ints, otherwise pandas widens missing codes to float NaN
                for column in ("status_code", "response_size"):
                    samples_df[column] = samples_df[column].astype("Int64")
                con.execute("INSERT INTO samples SELECT * FROM samples_df")
            summaries_df = pd.DataFrame(
                [
                    {
                        "run_id": run_id,
                        "kind": kind.value,
                        "total_requests": s.total_requests,
                        "successful_requests": s.successful_requests,
                        "failed_requests": s.failed_requests,
                        "average_latency_ms": s.average_latency_ms,
                        "p50_latency_ms": s.p50_latency_ms,
                        "p90_latency_ms": s.p90_latency_ms,
                        "p99_latency_ms": s.p99_latency_ms,
                        "min_latency_ms": s.min_latency_ms,
                        "max_latency_ms": s.max_latency_ms,
                        "requests_per_second": s.requests_per_second,
                        "total_duration_sec": s.total_duration_sec,
                        "status_codes_json": json.dumps({str(k): v for k, v in s.status_codes.items()}),
                        "errors_json": json.dumps(s.errors),
                    }
                    for kind, s in result.summaries.items()
                ]
            )
            if not summaries_df.empty:
                con.execute("INSERT INTO summaries SELECT * FROM summaries_df")
            per_df = pd.DataFrame(
                [
                    {
                        "run_id": run_id,
                        "kind": m.kind.value,
                        "second": m.second,
                        "achieved_rps": m.achieved_rps,
                        "p50_ms": m.p50_ms,
                        "p95_ms": m.p95_ms,
                        "p99_ms": m.p99_ms,
                        "error_rate": m.error_rate,
                        "timeout_rate": m.timeout_rate,
                    }
                    for m in per_second
                ]
            )
            if not per_df.empty:
                con.execute("INSERT INTO per_second SELECT * FROM per_df")

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT run_id, created_at, mode, notes FROM run_meta ORDER BY created_at DESC"
            ).fetchdf()

    def load_run_meta(self, run_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return json.loads(row[0])

    def load_samples(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM samples WHERE run_id = ? ORDER BY start_mono",
                [run_id],
            ).fetchdf()

    def load_summaries(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM summaries WHERE run_id = ? ORDER BY kind",
                [run_id],
            ).fetchdf()

    def load_per_second(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM per_second WHERE run_id = ? ORDER BY kind, second",
                [run_id],
            ).fetchdf()
