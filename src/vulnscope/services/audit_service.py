"""Audit orchestration: engines, consensus and a scored summary."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable

from pydantic import BaseModel, Field

from vulnscope.analysis.consensus import get_consensus_analysis
from vulnscope.analysis.orchestrator import AnalysisOrchestrator
from vulnscope.analysis.schemas import ConsensusResult, Vulnerability
from vulnscope.config import Settings
from vulnscope.constants import (
    ERROR_TRUNCATION_CHARS,
    ID_HEX_LENGTH,
    MAX_SECURITY_SCORE,
    SEVERITY_PENALTY,
    SEVERITY_RANK,
    EngineOutcome,
    Severity,
)
from vulnscope.observability.dispatcher import TraceDispatcher
from vulnscope.observability.emitters import (
    emit_analysis_end,
    emit_analysis_start,
    emit_consensus,
)
from vulnscope.resilience.errors import SourceTooLargeError

logger = logging.getLogger(__name__)


def audit_trace_id(audit_id: str) -> str:
    return f"audit_{audit_id}"


class EngineFailure(BaseModel):
    """Why one requested engine produced no result."""

    engine: str
    status: EngineOutcome
    error_class: str
    error: str = ""


class AuditSummary(BaseModel):
    """Headline numbers for a consensus result."""

    severity_counts: dict[Severity, int] = Field(
        default_factory=lambda: {s: 0 for s in Severity}
    )
    risk_level: Severity = Severity.INFO
    security_score: int = Field(
        default=MAX_SECURITY_SCORE, ge=0, le=MAX_SECURITY_SCORE
    )
    confidence_pct: int = Field(default=100, ge=0, le=100)
    total_findings: int = 0


class AuditReport(BaseModel):
    """Full outcome of one audit.

    ``engines_completed`` being empty means nothing was analysed,
    which is not the same as an empty ``consensus.vulnerabilities``.
    """

    audit_id: str
    consensus: ConsensusResult
    summary: AuditSummary
    engines_requested: list[str] = Field(
        default_factory=lambda: list[str]()
    )
    engines_completed: list[str] = Field(
        default_factory=lambda: list[str]()
    )
    engines_failed: list[EngineFailure] = Field(
        default_factory=lambda: list[EngineFailure]()
    )
    engines_unavailable: list[str] = Field(
        default_factory=lambda: list[str]()
    )
    duration_ms: float = 0.0

    @property
    def analyzed(self) -> bool:
        return bool(self.engines_completed)

    @property
    def trace_id(self) -> str:
        """Trace id under which this audit's events were emitted."""
        return audit_trace_id(self.audit_id)

    def prioritized(self) -> list[Vulnerability]:
        """Findings ordered most severe first; ties keep report order."""
        return sorted(
            self.consensus.vulnerabilities,
            key=lambda v: SEVERITY_RANK[v.severity],
            reverse=True,
        )


def summarize(consensus: ConsensusResult) -> AuditSummary:
    """Counts, overall risk level and a 0-100 security score."""
    counts = {s: 0 for s in Severity}
    for vuln in consensus.vulnerabilities:
        counts[vuln.severity] += 1

    present = [s for s, n in counts.items() if n]
    risk = (
        max(present, key=SEVERITY_RANK.__getitem__)
        if present
        else Severity.INFO
    )
    penalty = sum(SEVERITY_PENALTY[s] * n for s, n in counts.items())
    return AuditSummary(
        severity_counts=counts,
        risk_level=risk,
        security_score=max(0, MAX_SECURITY_SCORE - penalty),
        confidence_pct=round(consensus.confidence * 100),
        total_findings=len(consensus.vulnerabilities),
    )


async def run_audit(
    source_code: str,
    engine_names: Iterable[str] | None = None,
    *,
    settings: Settings | None = None,
    orchestrator: AnalysisOrchestrator | None = None,
    dispatcher: TraceDispatcher | None = None,
) -> AuditReport:
    """Audit one contract source.

    Steps:
      1. Reject oversize input before any engine sees it
      2. Run the requested engines (settle-all, per-engine timeout)
      3. Merge results through consensus and score the outcome

    Raises SourceTooLargeError for step 1. Engine failures never
    raise; they are reported on ``engines_failed``.
    """
    cfg = settings or Settings()
    if len(source_code) > cfg.max_source_chars:
        raise SourceTooLargeError(len(source_code), cfg.max_source_chars)

    orch = orchestrator or AnalysisOrchestrator.from_settings(
        cfg, dispatcher=dispatcher
    )
    tracer = dispatcher if dispatcher is not None else orch.dispatcher
    if tracer is not None and not tracer.handler_count:
        tracer = None
    requested = (
        list(engine_names)
        if engine_names is not None
        else list(cfg.default_engines)
    )
    audit_id = uuid.uuid4().hex[:ID_HEX_LENGTH]
    trace_id = audit_trace_id(audit_id)
    t0 = time.monotonic()

    if tracer is not None:
        await emit_analysis_start(
            tracer, trace_id, requested, len(source_code)
        )

    runs = await orch.run_engines(
        source_code, requested, trace_id=trace_id
    )
    results = [r.result for r in runs if r.result is not None]
    consensus = get_consensus_analysis(
        results, monotonic=cfg.monotonic_confidence
    )

    raw_findings = sum(len(r.vulnerabilities) for r in results)
    if tracer is not None:
        await emit_consensus(
            tracer,
            trace_id,
            raw_findings=raw_findings,
            unique_findings=len(consensus.vulnerabilities),
            confidence=consensus.confidence,
        )

    report = AuditReport(
        audit_id=audit_id,
        consensus=consensus,
        summary=summarize(consensus),
        engines_requested=requested,
        engines_completed=[r.engine for r in runs if r.succeeded],
        engines_failed=[
            EngineFailure(
                engine=r.engine,
                status=r.status,
                error_class=(
                    r.error_class.value if r.error_class else "unknown"
                ),
                error=(r.error or "")[:ERROR_TRUNCATION_CHARS],
            )
            for r in runs
            if not r.succeeded
        ],
        engines_unavailable=orch.registry.unknown(requested),
        duration_ms=(time.monotonic() - t0) * 1000,
    )

    logger.info(
        "event=audit_complete audit_id=%s engines=%d failed=%d"
        " findings=%d risk=%s score=%d",
        audit_id,
        len(report.engines_completed),
        len(report.engines_failed),
        report.summary.total_findings,
        report.summary.risk_level,
        report.summary.security_score,
    )
    if tracer is not None:
        await emit_analysis_end(
            tracer,
            trace_id,
            duration_ms=report.duration_ms,
            success=report.analyzed,
        )
    return report
