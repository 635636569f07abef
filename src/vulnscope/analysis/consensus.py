"""Cross-engine consensus: dedupe findings, merge confidence, fold metrics."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from vulnscope.analysis.schemas import (
    AnalysisMetrics,
    ConsensusResult,
    StaticAnalysisResult,
    Vulnerability,
)
from vulnscope.constants import (
    ADDITIONAL_RECOMMENDATION_PREFIX,
    CONFIDENCE_RANK,
    ConfidenceLevel,
)

logger = logging.getLogger(__name__)


def merge_confidence(
    existing: ConfidenceLevel,
    incoming: ConfidenceLevel,
    *,
    monotonic: bool = False,
) -> ConfidenceLevel:
    """Confidence after a second engine reports the same finding.

    By default only LOW is ever raised (to MEDIUM or HIGH); MEDIUM
    stays MEDIUM even when HIGH arrives. ``monotonic`` takes the
    maximum instead.
    """
    if monotonic:
        return max(existing, incoming, key=CONFIDENCE_RANK.__getitem__)
    if existing == ConfidenceLevel.LOW and incoming in (
        ConfidenceLevel.HIGH,
        ConfidenceLevel.MEDIUM,
    ):
        return incoming
    return existing


def _merge_recommendation(existing: str, incoming: str) -> str:
    if not incoming or incoming in existing:
        return existing
    return (
        f"{existing}\n\n{ADDITIONAL_RECOMMENDATION_PREFIX}{incoming}"
    )


def aggregate_metrics(
    results: Sequence[StaticAnalysisResult],
) -> AnalysisMetrics:
    """Max of each count across engines; first reported gas estimate."""
    if not results:
        return AnalysisMetrics()
    metrics = [r.metrics for r in results]
    return AnalysisMetrics(
        total_lines=max(m.total_lines for m in metrics),
        complexity_score=max(m.complexity_score for m in metrics),
        functions_analyzed=max(m.functions_analyzed for m in metrics),
        contracts_analyzed=max(m.contracts_analyzed for m in metrics),
        gas_estimate=next(
            (m.gas_estimate for m in metrics if m.gas_estimate is not None),
            None,
        ),
    )


def get_consensus_analysis(
    results: Sequence[StaticAnalysisResult],
    *,
    monotonic: bool = False,
) -> ConsensusResult:
    """Merge engine results into one deduplicated report.

    Findings with the same title and line numbers are one defect.
    The first engine to report it (in result order) fixes every field
    except confidence and recommendation. ``confidence`` is the
    share of raw findings that survived deduplication, 1.0 when no
    engine found anything.
    """
    merged: dict[tuple[str, tuple[int, ...]], Vulnerability] = {}
    total = 0
    for result in results:
        for vuln in result.vulnerabilities:
            total += 1
            key = (vuln.title, vuln.line_numbers)
            existing = merged.get(key)
            if existing is None:
                merged[key] = vuln
                continue
            logger.debug(
                "event=finding_merged key=%s tool=%s",
                vuln.identity_key,
                result.tool,
            )
            merged[key] = existing.model_copy(
                update={
                    "confidence": merge_confidence(
                        existing.confidence,
                        vuln.confidence,
                        monotonic=monotonic,
                    ),
                    "recommendation": _merge_recommendation(
                        existing.recommendation, vuln.recommendation
                    ),
                }
            )

    return ConsensusResult(
        vulnerabilities=list(merged.values()),
        confidence=len(merged) / total if total else 1.0,
        metrics=aggregate_metrics(results),
    )
