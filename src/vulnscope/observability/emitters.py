"""Typed convenience functions for emitting trace events."""

from __future__ import annotations

from collections.abc import Sequence

from vulnscope.observability.dispatcher import TraceDispatcher
from vulnscope.observability.events import TraceEvent


async def emit_analysis_start(
    dispatcher: TraceDispatcher,
    trace_id: str,
    engines: Sequence[str],
    source_chars: int,
) -> None:
    await dispatcher.emit(
        TraceEvent(
            type="analysis_start",
            trace_id=trace_id,
            category="audit",
            data={
                "engines": ",".join(engines),
                "source_chars": source_chars,
            },
        )
    )


async def emit_analysis_end(
    dispatcher: TraceDispatcher,
    trace_id: str,
    duration_ms: float,
    success: bool,
) -> None:
    await dispatcher.emit(
        TraceEvent(
            type="analysis_end",
            trace_id=trace_id,
            category="audit",
            data={
                "duration_ms": duration_ms,
                "success": success,
            },
        )
    )


async def emit_engine_end(
    dispatcher: TraceDispatcher,
    trace_id: str,
    engine: str,
    duration_ms: float,
    ok: bool,
    findings: int = 0,
    error: str | None = None,
) -> None:
    await dispatcher.emit(
        TraceEvent(
            type="engine_end",
            trace_id=trace_id,
            category="engine",
            data={
                "engine": engine,
                "duration_ms": duration_ms,
                "ok": ok,
                "findings": findings,
                "error": error,
            },
        )
    )


async def emit_consensus(
    dispatcher: TraceDispatcher,
    trace_id: str,
    raw_findings: int,
    unique_findings: int,
    confidence: float,
) -> None:
    await dispatcher.emit(
        TraceEvent(
            type="consensus",
            trace_id=trace_id,
            category="consensus",
            data={
                "raw_findings": raw_findings,
                "unique_findings": unique_findings,
                "confidence": confidence,
            },
        )
    )
