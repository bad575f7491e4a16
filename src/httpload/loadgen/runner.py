from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx

from httpload.config import RunConfig, ScenarioConfig, StopCondition
from httpload.loadgen.client import execute_request
from httpload.loadgen.scenario import run_scenario
from httpload.metrics import ResultSummary, SampleRecord, StepKind, summarize_by_kind

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int]], Awaitable[None]]
UnitOfWork = Callable[[httpx.AsyncClient], Awaitable[list[SampleRecord]]]

SINGLE_MODE = "single"
SCENARIO_MODE = "scenario"


class RunContext:
    """State shared by every worker of one run.

    Workers touch it only through ``claim``, ``record`` and ``stop``. A unit
    index is reserved by ``claim`` before the unit executes, so count-bounded
    runs never start more than ``total`` units.
    """

    def __init__(self, total: int | None = None) -> None:
        self.total = total
        self.samples: list[SampleRecord] = []
        self._claimed = 0
        self._completed = 0
        self._stopped = asyncio.Event()
        self._lock = asyncio.Lock()

    @property
    def claimed(self) -> int:
        return self._claimed

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        self._stopped.set()

    def claim(self) -> bool:
        if self.stopped:
            return False
        if self.total is not None and self._claimed >= self.total:
            self.stop()
            return False
        self._claimed += 1
        return True

    async def record(self, samples: list[SampleRecord]) -> int:
        async with self._lock:
            self.samples.extend(samples)
            self._completed += 1
            return self._completed


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    mode: str
    samples: list[SampleRecord]
    summaries: dict[StepKind, ResultSummary]
    elapsed_sec: float
    units_completed: int
    started_mono: float
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def summary(self) -> ResultSummary:
        if StepKind.REQUEST in self.summaries:
            return self.summaries[StepKind.REQUEST]
        return next(iter(self.summaries.values()))


def _new_run_id() -> str:
    return uuid.uuid4().hex


async def run_load_test(
    config: RunConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    target = config.target

    async def unit(client: httpx.AsyncClient) -> list[SampleRecord]:
        response = await execute_request(
            client,
            target.url,
            target.method.value,
            target.headers,
            target.body,
            target.timeout_sec,
        )
        return [response.sample]

    logger.info(
        "Starting load test: %s %s, concurrency=%d, stop=%s",
        target.method.value,
        target.url,
        config.concurrency,
        config.stop,
    )
    return await _execute(
        config.run_id,
        SINGLE_MODE,
        config.concurrency,
        config.stop,
        unit,
        [StepKind.REQUEST],
        transport,
        progress,
    )


async def run_scenario_test(
    config: ScenarioConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    async def unit(client: httpx.AsyncClient) -> list[SampleRecord]:
        return await run_scenario(client, config)

    logger.info(
        "Starting scenario test: create=%s message=%s, concurrency=%d, stop=%s",
        config.create_url,
        config.message_url,
        config.concurrency,
        config.stop,
    )
    return await _execute(
        config.run_id,
        SCENARIO_MODE,
        config.concurrency,
        config.stop,
        unit,
        [StepKind.CREATE, StepKind.MESSAGE],
        transport,
        progress,
    )


async def _execute(
    run_id: str | None,
    mode: str,
    concurrency: int,
    stop: StopCondition,
    unit: UnitOfWork,
    kinds: list[StepKind],
    transport: httpx.AsyncBaseTransport | None,
    progress: ProgressCallback | None,
) -> RunResult:
    started_at = datetime.now(timezone.utc)
    started_mono = time.perf_counter()
    # one pooled connection per worker, otherwise pool waits count as latency
    limits = httpx.Limits(max_connections=concurrency, max_keepalive_connections=concurrency)
    async with httpx.AsyncClient(transport=transport, limits=limits) as client:
        ctx = await run_workers(client, concurrency, stop, unit, progress)
    elapsed = time.perf_counter() - started_mono
    summaries = summarize_by_kind(ctx.samples, kinds)
    logger.info(
        "Run finished: %d units, %d samples in %.2fs",
        ctx.completed,
        len(ctx.samples),
        elapsed,
    )
    return RunResult(
        run_id=run_id or _new_run_id(),
        mode=mode,
        samples=list(ctx.samples),
        summaries=summaries,
        elapsed_sec=elapsed,
        units_completed=ctx.completed,
        started_mono=started_mono,
        started_at=started_at,
    )


async def run_workers(
    client: httpx.AsyncClient,
    concurrency: int,
    stop: StopCondition,
    unit: UnitOfWork,
    progress: ProgressCallback | None = None,
) -> RunContext:
    """Run ``concurrency`` workers until the stop condition holds.

    Returns only after every worker has left its loop. In duration mode the
    timer just flips the stop flag; units already in flight finish and are
    recorded. If a worker raises, the remaining workers are cancelled before
    the error propagates as an ``ExceptionGroup``.
    """
    ctx = RunContext(total=stop.total)

    async def worker(worker_id: int) -> None:
        while ctx.claim():
            samples = await unit(client)
            completed = await ctx.record(samples)
            if progress:
                await progress(completed, stop.total)
        logger.debug("worker %d exiting", worker_id)

    timer: asyncio.Task[None] | None = None
    if stop.duration_sec is not None:
        timer = asyncio.create_task(_stop_after(ctx, stop.duration_sec))
    try:
        async with asyncio.TaskGroup() as tg:
            for i in range(concurrency):
                tg.create_task(worker(i))
    finally:
        if timer is not None:
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer
    return ctx


async def _stop_after(ctx: RunContext, duration_sec: float) -> None:
    await asyncio.sleep(duration_sec)
    logger.debug("duration of %.2fs elapsed, stopping workers", duration_sec)
    ctx.stop()
