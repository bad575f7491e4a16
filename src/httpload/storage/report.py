from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from httpload.config import RunConfig, ScenarioConfig
from httpload.loadgen.runner import SCENARIO_MODE, RunResult


def build_report(config: RunConfig | ScenarioConfig, result: RunResult) -> dict[str, Any]:
    report: dict[str, Any] = {
        "runId": result.run_id,
        "config": dict(config.to_metadata()),
        "results": {kind.value: summary.to_dict() for kind, summary in result.summaries.items()},
        "elapsedSec": result.elapsed_sec,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if result.mode == SCENARIO_MODE:
        report["samples"] = [sample.to_dict() for sample in result.samples]
    return report


def write_report(path: str | Path, config: RunConfig | ScenarioConfig, result: RunResult) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(build_report(config, result), indent=2), encoding="utf-8")
    return output
