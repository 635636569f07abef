"""Tests for the console and engine stats trace handlers."""

from __future__ import annotations

import logging

import pytest

from vulnscope.observability.events import ALL_CATEGORIES, TraceEvent
from vulnscope.observability.handlers.console import ConsoleTraceHandler
from vulnscope.observability.handlers.engine_stats import (
    EngineStats,
    EngineStatsHandler,
)

CONSOLE_LOGGER = "vulnscope.observability.handlers.console"


def _engine_end(
    trace_id: str, engine: str, duration: float, ok: bool, findings: int
) -> TraceEvent:
    return TraceEvent(
        type="engine_end",
        trace_id=trace_id,
        category="engine",
        data={
            "engine": engine,
            "duration_ms": duration,
            "ok": ok,
            "findings": findings,
            "error": None if ok else "engine 'mythril' timed out after 0.2s",
        },
    )


class TestConsoleTraceHandler:
    @pytest.mark.asyncio
    async def test_engine_success_line(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        handler = ConsoleTraceHandler()
        with caplog.at_level(logging.INFO, logger=CONSOLE_LOGGER):
            await handler.handle(_engine_end("t1", "slither", 2.04, True, 3))
        [record] = caplog.records
        assert record.getMessage() == (
            "event=engine_end trace_id=t1 engine=slither outcome=ok "
            "findings=3 duration_ms=2.0"
        )

    @pytest.mark.asyncio
    async def test_engine_failure_line_carries_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        handler = ConsoleTraceHandler()
        with caplog.at_level(logging.INFO, logger=CONSOLE_LOGGER):
            await handler.handle(_engine_end("t1", "mythril", 200.0, False, 0))
        message = caplog.records[0].getMessage()
        assert "engine=mythril outcome=failed findings=0" in message
        assert "error=\"engine 'mythril' timed out after 0.2s\"" in message

    @pytest.mark.asyncio
    async def test_consensus_line_shows_merged_count(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        event = TraceEvent(
            type="consensus",
            trace_id="t1",
            category="consensus",
            data={
                "raw_findings": 5,
                "unique_findings": 3,
                "confidence": 0.6666,
            },
        )
        with caplog.at_level(logging.INFO, logger=CONSOLE_LOGGER):
            await ConsoleTraceHandler().handle(event)
        assert caplog.records[0].getMessage() == (
            "event=consensus trace_id=t1 raw_findings=5 unique_findings=3 "
            "merged=2 confidence=0.67"
        )

    @pytest.mark.asyncio
    async def test_audit_start_and_end_lines(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        handler = ConsoleTraceHandler()
        with caplog.at_level(logging.INFO, logger=CONSOLE_LOGGER):
            await handler.handle(
                TraceEvent(
                    type="analysis_start",
                    trace_id="t1",
                    data={"engines": "", "source_chars": 42},
                )
            )
            await handler.handle(
                TraceEvent(
                    type="analysis_end",
                    trace_id="t1",
                    data={"duration_ms": 12.345, "success": False},
                )
            )
        start, end = (r.getMessage() for r in caplog.records)
        assert start == (
            "event=audit_start trace_id=t1 engines=- source_chars=42"
        )
        assert end == (
            "event=audit_end trace_id=t1 analyzed=False duration_ms=12.3"
        )

    def test_name_and_categories(self) -> None:
        handler = ConsoleTraceHandler()
        assert handler.name == "console"
        assert handler.categories == ALL_CATEGORIES


class TestEngineStatsHandler:
    @pytest.mark.asyncio
    async def test_accumulates_per_trace(self) -> None:
        handler = EngineStatsHandler()
        await handler.handle(_engine_end("t1", "slither", 2.0, True, 3))
        await handler.handle(_engine_end("t1", "mythril", 5.0, False, 0))
        await handler.handle(_engine_end("t2", "custom", 1.0, True, 1))

        stats = handler.pop_stats("t1")
        assert stats.runs == 2
        assert stats.failures == 1
        assert stats.findings == 3
        assert stats.total_duration_ms == pytest.approx(7.0)
        assert stats.durations_ms == {"slither": 2.0, "mythril": 5.0}
        assert stats.failed_engines == ["mythril"]
        assert handler.pop_stats("t2").runs == 1

    @pytest.mark.asyncio
    async def test_pop_releases_trace(self) -> None:
        handler = EngineStatsHandler()
        await handler.handle(_engine_end("t1", "slither", 2.0, True, 3))
        assert handler.pop_stats("t1").runs == 1
        assert handler.pop_stats("t1").runs == 0

    @pytest.mark.asyncio
    async def test_ignores_other_event_types(self) -> None:
        handler = EngineStatsHandler()
        await handler.handle(TraceEvent(type="analysis_start", trace_id="t1"))
        assert handler.pop_stats("t1") == EngineStats()

    def test_subscribes_to_engine_events_only(self) -> None:
        assert EngineStatsHandler().categories == frozenset({"engine"})


class TestEngineStatsSummary:
    def test_summary_lines(self) -> None:
        stats = EngineStats(
            runs=2,
            failures=1,
            findings=4,
            total_duration_ms=14.25,
            durations_ms={"custom": 4.25, "mythril": 10.0},
            failed_engines=["mythril"],
        )
        assert stats.summary_lines() == [
            "Engine timings: 2 run(s), 1 failed, 4 finding(s), 14.2 ms total",
            "  custom        4.2 ms",
            "  mythril      10.0 ms  FAILED",
        ]

    def test_empty_summary(self) -> None:
        assert EngineStats().summary_lines() == [
            "Engine timings: 0 run(s), 0 failed, 0 finding(s), 0.0 ms total"
        ]
