from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from httpload.config import (
    ConfigError,
    RunConfig,
    ScenarioConfig,
    build_run_config,
    build_scenario_config,
    load_config_file,
    parse_body,
    parse_headers,
)
from httpload.loadgen.runner import RunResult, run_load_test, run_scenario_test
from httpload.metrics import ResultSummary, aggregate_per_second
from httpload.storage import Storage, write_report

logger = logging.getLogger("httpload")


def _common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="JSON configuration file; flags override its values")
    parser.add_argument("--headers", help="Request headers as a JSON object")
    parser.add_argument("--concurrency", type=int, help="Number of workers (default: 10)")
    parser.add_argument("--duration", type=float, help="Run duration in seconds")
    parser.add_argument("--timeout", type=int, help="Per-request timeout in ms (default: 10000)")
    parser.add_argument("--output", help="Write a JSON report to this file")
    parser.add_argument("--db", type=Path, help="Also persist the run into this DuckDB file")
    parser.add_argument("--run-id", help="Identifier of the run (default: random)")
    parser.add_argument("--notes", help="Free-form notes stored with the run")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="httpload", description="Concurrent HTTP load generator")
    sub = parser.add_subparsers(dest="mode", required=True)

    single = sub.add_parser("single", help="Repeat one request against one endpoint")
    single.add_argument("--url", help="Target URL")
    single.add_argument("--method", help="GET, POST, PUT, PATCH or DELETE (default: GET)")
    single.add_argument("--body", help="Request body; parsed as JSON when possible")
    single.add_argument("--total-requests", type=int, help="Total number of requests")
    _common_arguments(single)

    scenario = sub.add_parser("scenario", help="Create a resource, then post messages to it")
    scenario.add_argument("--create-url", help="Endpoint that creates the resource")
    scenario.add_argument("--message-url", help="Endpoint that receives the follow-up messages")
    scenario.add_argument("--create-body", help="Raw body of the create request")
    scenario.add_argument("--message-body-template", help="Message body with the placeholder token")
    scenario.add_argument("--messages-per-conversation", type=int, help="Messages per scenario (default: 3)")
    scenario.add_argument("--total-conversations", type=int, help="Total number of scenarios")
    _common_arguments(scenario)
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    values: dict[str, Any] = {
        "headers": parse_headers(args.headers) if args.headers else None,
        "concurrency": args.concurrency,
        "durationSec": args.duration,
        "timeoutMs": args.timeout,
        "notes": args.notes,
        "runId": args.run_id,
    }
    if args.mode == "single":
        values.update(
            {
                "url": args.url,
                "method": args.method,
                "body": parse_body(args.body) if args.body is not None else None,
                "totalRequests": args.total_requests,
            }
        )
    else:
        values.update(
            {
                "createUrl": args.create_url,
                "messageUrl": args.message_url,
                "createBody": args.create_body,
                "messageBodyTemplate": args.message_body_template,
                "messagesPerConversation": args.messages_per_conversation,
                "totalConversations": args.total_conversations,
            }
        )
    return values


def resolve_config(args: argparse.Namespace) -> tuple[RunConfig | ScenarioConfig, str | None]:
    file_values = load_config_file(args.config) if args.config else {}
    overrides = _overrides(args)
    output = args.output or file_values.get("output")
    if args.mode == "single":
        return build_run_config(file_values, overrides), output
    return build_scenario_config(file_values, overrides), output


def _pct(part: int, total: int) -> float:
    return (part / total) * 100 if total else 0.0


def format_summary(title: str, summary: ResultSummary) -> str:
    lines = [
        f"--- {title} ---",
        f"Duration: {summary.total_duration_sec:.2f}s",
        "Requests:",
        f"  Total: {summary.total_requests}",
        f"  Success: {summary.successful_requests} ({_pct(summary.successful_requests, summary.total_requests):.1f}%)",
        f"  Failed: {summary.failed_requests} ({_pct(summary.failed_requests, summary.total_requests):.1f}%)",
        f"  RPS: {summary.requests_per_second:.2f}",
        "Latency (ms):",
        f"  Avg: {summary.average_latency_ms:.2f}",
        f"  P50: {summary.p50_latency_ms:.2f}",
        f"  P90: {summary.p90_latency_ms:.2f}",
        f"  P99: {summary.p99_latency_ms:.2f}",
        f"  Min: {summary.min_latency_ms:.2f}",
        f"  Max: {summary.max_latency_ms:.2f}",
    ]
    if summary.status_codes:
        lines.append("Status codes:")
        lines.extend(f"  {code}: {count}" for code, count in summary.status_codes.items())
    if summary.errors:
        lines.append("Errors:")
        lines.extend(f"  {error}: {count}" for error, count in summary.errors.items())
    return "\n".join(lines)


def format_report(config: RunConfig | ScenarioConfig, result: RunResult) -> str:
    header = ["=== LOAD TEST RESULTS ==="]
    if isinstance(config, RunConfig):
        header.append(f"URL: {config.target.url}")
        header.append(f"Method: {config.target.method.value}")
    else:
        header.append(f"Create URL: {config.create_url}")
        header.append(f"Message URL: {config.message_url}")
    header.append(f"Concurrency: {config.concurrency}")
    header.append(f"Elapsed: {result.elapsed_sec:.2f}s ({result.units_completed} units)")
    blocks = ["\n".join(header)]
    for kind, summary in result.summaries.items():
        blocks.append(format_summary(kind.value, summary))
    return "\n\n".join(blocks)


async def _run(config: RunConfig | ScenarioConfig) -> RunResult:
    if isinstance(config, RunConfig):
        return await run_load_test(config)
    return await run_scenario_test(config)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        config, output = resolve_config(args)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    storage = Storage(args.db) if args.db else None
    if storage is not None and config.run_id and storage.run_exists(config.run_id):
        logger.error("Run %s already exists in %s", config.run_id, args.db)
        return 1

    result = asyncio.run(_run(config))
    print(format_report(config, result))

    if output:
        path = write_report(output, config, result)
        print(f"\nReport saved to {path}")
    if storage is not None:
        storage.save_run(config, result, aggregate_per_second(result.samples, result.started_mono))
        print(f"Run stored as {result.run_id} in {args.db}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
