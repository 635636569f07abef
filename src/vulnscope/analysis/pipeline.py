"""Settle-all engine execution with per-engine timeouts."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial

from vulnscope.analysis.engines.base import AnalyzerEngine
from vulnscope.analysis.schemas import StaticAnalysisResult
from vulnscope.constants import EngineOutcome
from vulnscope.resilience.errors import (
    EngineTimeoutError,
    ErrorClass,
    classify_error,
)

logger = logging.getLogger(__name__)


async def run_in_daemon_thread[T](
    fn: Callable[[], T], *, thread_name: str
) -> T:
    """Await ``fn()`` running on its own daemon thread.

    Unlike ``asyncio.to_thread`` the thread does not belong to the
    loop's default executor, so neither ``asyncio.run`` nor
    interpreter exit waits for it. If the awaiting side gives up
    (timeout or cancellation) the thread runs on and its outcome is
    dropped.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def _settle(outcome: Callable[[], None]) -> None:
        if not future.done():
            outcome()

    def _worker() -> None:
        try:
            result = fn()
        except BaseException as exc:
            settle = partial(future.set_exception, exc)
        else:
            settle = partial(future.set_result, result)
        try:
            loop.call_soon_threadsafe(_settle, settle)
        except RuntimeError:
            logger.debug(
                "event=engine_result_dropped thread=%s reason=loop_closed",
                thread_name,
            )

    threading.Thread(target=_worker, name=thread_name, daemon=True).start()
    return await future


@dataclass
class EngineRun:
    """Outcome of a single engine invocation."""

    engine: str
    result: StaticAnalysisResult | None
    duration_ms: float
    status: EngineOutcome
    error: str | None = None
    error_class: ErrorClass | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == EngineOutcome.COMPLETED


@dataclass
class EngineStage:
    """One engine bound to an optional timeout.

    The engine runs on a daemon thread of its own. On timeout the
    thread cannot be interrupted; it is abandoned, its eventual
    result is dropped, and it never delays loop shutdown or process
    exit.
    """

    engine: AnalyzerEngine
    timeout: float | None = None  # seconds; None = no timeout

    @property
    def name(self) -> str:
        return self.engine.name

    async def run(self, source_code: str) -> EngineRun:
        """Run the engine, capturing timing and errors. Never raises."""
        start = time.monotonic()
        try:
            work = run_in_daemon_thread(
                partial(self.engine.analyze, source_code),
                thread_name=f"engine-{self.name}",
            )
            if self.timeout is not None:
                try:
                    result = await asyncio.wait_for(
                        work, timeout=self.timeout
                    )
                except TimeoutError as exc:
                    raise EngineTimeoutError(
                        self.name, self.timeout
                    ) from exc
            else:
                result = await work
            elapsed = (time.monotonic() - start) * 1000
            return EngineRun(
                engine=self.name,
                result=result,
                duration_ms=elapsed,
                status=EngineOutcome.COMPLETED,
            )
        except Exception as exc:
            elapsed = (time.monotonic() - start) * 1000
            error_class = classify_error(exc)
            logger.debug(
                "event=stage_failed engine=%s error_class=%s",
                self.name,
                error_class.value,
                exc_info=True,
            )
            return EngineRun(
                engine=self.name,
                result=None,
                duration_ms=elapsed,
                status=(
                    EngineOutcome.TIMED_OUT
                    if error_class is ErrorClass.TIMEOUT
                    else EngineOutcome.FAILED
                ),
                error=str(exc),
                error_class=error_class,
            )


@dataclass
class EngineGroup:
    """Run several engines concurrently on the same source."""

    name: str
    stages: list[EngineStage] = field(
        default_factory=lambda: list[EngineStage]()
    )
    max_concurrency: int | None = None

    async def execute(self, source_code: str) -> list[EngineRun]:
        """Run all stages concurrently with optional semaphore.

        Every stage runs to completion or failure independently.
        Failed stages do not cancel siblings. Results are positional:
        ``results[i]`` belongs to ``stages[i]`` whatever order the
        stages finished in.
        """
        if not self.stages:
            return []

        semaphore = (
            asyncio.Semaphore(self.max_concurrency)
            if self.max_concurrency
            else None
        )

        async def _run_stage(stage: EngineStage) -> EngineRun:
            if semaphore:
                async with semaphore:
                    return await stage.run(source_code)
            return await stage.run(source_code)

        runs = await asyncio.gather(
            *(_run_stage(stage) for stage in self.stages)
        )
        logger.debug(
            "event=engine_group_done group=%s stages=%d failed=%d",
            self.name,
            len(runs),
            sum(1 for r in runs if not r.succeeded),
        )
        return list(runs)
