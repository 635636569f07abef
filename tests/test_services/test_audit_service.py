"""Tests for the audit service: engines, consensus and scoring."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, patch

import pytest

from tests.conftest import ExplodingEngine, StubEngine, make_vuln
from vulnscope.analysis.orchestrator import (
    AnalysisOrchestrator,
    EngineRegistry,
)
from vulnscope.analysis.schemas import ConsensusResult
from vulnscope.config import Settings
from vulnscope.constants import ConfidenceLevel, EngineOutcome, Severity
from vulnscope.observability.dispatcher import TraceDispatcher
from vulnscope.observability.events import ALL_CATEGORIES, TraceEvent
from vulnscope.resilience.errors import SourceTooLargeError
from vulnscope.services.audit_service import run_audit, summarize

ALL_ENGINES = ["slither", "mythril", "custom"]


class _Collector:
    categories = ALL_CATEGORIES

    def __init__(self) -> None:
        self.events: list[TraceEvent] = []

    @property
    def name(self) -> str:
        return "collector"

    async def handle(self, event: TraceEvent) -> None:
        self.events.append(event)


# ── summarize ────────────────────────────────────────────────


class TestSummarize:
    def test_clean_result(self) -> None:
        summary = summarize(ConsensusResult())
        assert summary.risk_level == Severity.INFO
        assert summary.security_score == 100
        assert summary.confidence_pct == 100
        assert summary.total_findings == 0
        assert all(n == 0 for n in summary.severity_counts.values())

    def test_penalties_and_risk(self) -> None:
        consensus = ConsensusResult(
            vulnerabilities=[
                make_vuln("A", (1,), severity=Severity.HIGH),
                make_vuln("B", (2,), severity=Severity.LOW),
                make_vuln("C", (3,), severity=Severity.INFO),
            ],
            confidence=0.75,
        )
        summary = summarize(consensus)
        assert summary.risk_level == Severity.HIGH
        assert summary.security_score == 100 - 15 - 3
        assert summary.confidence_pct == 75
        assert summary.severity_counts[Severity.HIGH] == 1

    def test_score_floors_at_zero(self) -> None:
        consensus = ConsensusResult(
            vulnerabilities=[
                make_vuln(f"V{i}", (i,), severity=Severity.CRITICAL)
                for i in range(1, 6)
            ]
        )
        assert summarize(consensus).security_score == 0


# ── run_audit ────────────────────────────────────────────────


class TestRunAudit:
    @pytest.mark.asyncio
    async def test_vulnerable_contract_all_engines(
        self, vulnerable_source: str
    ) -> None:
        report = await run_audit(vulnerable_source, ALL_ENGINES)
        assert report.engines_completed == ALL_ENGINES
        assert report.engines_failed == []
        assert report.engines_unavailable == []
        assert report.summary.risk_level == Severity.CRITICAL
        assert report.summary.severity_counts[Severity.CRITICAL] == 1
        assert report.summary.severity_counts[Severity.HIGH] == 2
        assert report.summary.severity_counts[Severity.LOW] == 3
        assert report.summary.security_score == 36
        assert report.consensus.metrics.gas_estimate == 48_000
        assert report.consensus.metrics.complexity_score == 7

    @pytest.mark.asyncio
    async def test_default_engines_from_settings(
        self, vulnerable_source: str
    ) -> None:
        report = await run_audit(vulnerable_source)
        assert report.engines_requested == ["slither", "custom"]
        assert report.engines_completed == ["slither", "custom"]
        assert "Selfdestruct Usage Detected" not in {
            v.title for v in report.consensus.vulnerabilities
        }

    @pytest.mark.asyncio
    async def test_prioritized_most_severe_first(
        self, vulnerable_source: str
    ) -> None:
        report = await run_audit(vulnerable_source, ALL_ENGINES)
        severities = [v.severity for v in report.prioritized()]
        assert severities[0] == Severity.CRITICAL
        assert severities[-1] == Severity.LOW

    @pytest.mark.asyncio
    async def test_clean_contract(self, clean_source: str) -> None:
        report = await run_audit(clean_source, ALL_ENGINES)
        assert report.analyzed
        assert report.consensus.vulnerabilities == []
        assert report.summary.security_score == 100

    @pytest.mark.asyncio
    async def test_unknown_engine_reported_unavailable(
        self, clean_source: str
    ) -> None:
        report = await run_audit(clean_source, ["slither", "doesNotExist"])
        assert report.engines_completed == ["slither"]
        assert report.engines_unavailable == ["doesNotExist"]

    @pytest.mark.asyncio
    async def test_nothing_analyzed_differs_from_nothing_found(self) -> None:
        report = await run_audit("contract A {}", ["doesNotExist"])
        assert not report.analyzed
        assert report.consensus.vulnerabilities == []

    @pytest.mark.asyncio
    async def test_engine_failure_reported(self) -> None:
        registry = EngineRegistry(
            [StubEngine("ok", [make_vuln()]), ExplodingEngine("bad")]
        )
        report = await run_audit(
            "src",
            ["ok", "bad"],
            orchestrator=AnalysisOrchestrator(registry),
        )
        assert report.engines_completed == ["ok"]
        [failure] = report.engines_failed
        assert failure.engine == "bad"
        assert failure.status == EngineOutcome.FAILED
        assert failure.error_class == "engine"
        assert report.summary.total_findings == 1

    @pytest.mark.asyncio
    async def test_oversize_source_rejected(self) -> None:
        settings = Settings(max_source_chars=10)
        with pytest.raises(SourceTooLargeError):
            await run_audit("x" * 11, settings=settings)

    @pytest.mark.asyncio
    async def test_monotonic_setting_reaches_consensus(self) -> None:
        registry = EngineRegistry(
            [
                StubEngine("a", [make_vuln("X", (1,))]),
                StubEngine(
                    "b",
                    [
                        make_vuln("X", (1,), confidence=ConfidenceLevel.HIGH)
                    ],
                ),
            ]
        )
        orch = AnalysisOrchestrator(registry)
        plain = await run_audit("src", ["a", "b"], orchestrator=orch)
        raised = await run_audit(
            "src",
            ["a", "b"],
            settings=Settings(monotonic_confidence=True),
            orchestrator=orch,
        )
        assert plain.consensus.vulnerabilities[0].confidence == "MEDIUM"
        assert raised.consensus.vulnerabilities[0].confidence == "HIGH"

    @pytest.mark.asyncio
    async def test_trace_events_emitted(self, clock_source: str) -> None:
        collector = _Collector()
        dispatcher = TraceDispatcher()
        dispatcher.register(collector)
        orch = AnalysisOrchestrator.from_settings(
            Settings(), dispatcher=dispatcher
        )
        report = await run_audit(
            clock_source, ["slither", "mythril"], orchestrator=orch
        )
        types = [e.type for e in collector.events]
        assert types == [
            "analysis_start",
            "engine_end",
            "engine_end",
            "consensus",
            "analysis_end",
        ]
        assert {e.trace_id for e in collector.events} == {report.trace_id}
        assert report.trace_id == f"audit_{report.audit_id}"
        consensus_event = collector.events[3]
        assert consensus_event.data["raw_findings"] == 2
        assert consensus_event.data["unique_findings"] == 1

    @pytest.mark.asyncio
    async def test_dispatcher_without_handlers_skips_tracing(
        self, clean_source: str
    ) -> None:
        with patch(
            "vulnscope.services.audit_service.emit_analysis_start",
            new_callable=AsyncMock,
        ) as start:
            report = await run_audit(
                clean_source, ["slither"], dispatcher=TraceDispatcher()
            )
        assert report.analyzed
        start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_completion_logged(
        self, clean_source: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(
            logging.INFO, logger="vulnscope.services.audit_service"
        ):
            report = await run_audit(clean_source, ["custom"])
        assert f"event=audit_complete audit_id={report.audit_id}" in (
            caplog.text
        )

    @pytest.mark.asyncio
    async def test_report_serializes_to_json(
        self, vulnerable_source: str
    ) -> None:
        report = await run_audit(vulnerable_source, ALL_ENGINES)
        payload = report.model_dump(mode="json")
        assert payload["summary"]["risk_level"] == "CRITICAL"
        assert payload["summary"]["severity_counts"]["HIGH"] == 2
        assert payload["consensus"]["confidence"] == 1.0
