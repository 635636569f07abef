"""Slither-style engine: pattern library plus multi-line heuristics.

Emulates the breadth of a detector suite with the shared pattern
library, then layers hand-coded rules that need more than one line
of context.
"""

from __future__ import annotations

import re

from vulnscope.analysis.engines.base import (
    CONTRACT_RE,
    FUNCTION_RE,
    STATE_WRITE_RE,
    DetectionRule,
    RuleEngine,
    run_rules,
)
from vulnscope.analysis.patterns.library import (
    PatternLibrary,
    PatternMatch,
    VulnerabilityPattern,
)
from vulnscope.analysis.schemas import AnalysisMetrics, Vulnerability
from vulnscope.analysis.source import SourceText
from vulnscope.constants import (
    COMPLEXITY_KEYWORDS,
    ORACLE_MITIGATION_KEYWORDS,
    REENTRANCY_LOOKAHEAD_LINES,
    ConfidenceLevel,
    EngineName,
    Severity,
    confidence_from_score,
)

_COMPLEXITY_RE = re.compile(
    r"\b(?:" + "|".join(COMPLEXITY_KEYWORDS) + r")\b"
)

# .call(...), .call{value: x}(...), legacy .call.value(x)(...)
_LOW_LEVEL_CALL_RE = re.compile(
    r"\.\s*call\s*(?:\{[^}\n]*\}\s*\(|\(|\.\s*value\s*\()"
)
_BLOCK_NUMBER_RACE_RE = re.compile(
    r"require\s*\(\s*(?:[\w.]+\s*>=?\s*block\.number"
    r"|block\.number\s*<=?\s*[\w.]+)\s*\)"
)
_ORACLE_PRICE_RE = re.compile(
    r"\buint(?:256)?\s+\w*price\s*=\s*"
    r"[\w.]*(?:uniswap|chainlink|oracle|pair|pool|price)",
    re.IGNORECASE,
)


def _call_then_write(
    source: SourceText, match: re.Match[str]
) -> tuple[int, ...] | None:
    """Call line and the first storage write within the look-ahead."""
    call_line = source.line_at(match.start())
    last = min(source.line_count, call_line + REENTRANCY_LOOKAHEAD_LINES)
    for line in range(call_line + 1, last + 1):
        if STATE_WRITE_RE.search(source.masked_lines[line - 1]):
            return (call_line, line)
    return None


def _has_oracle_mitigation(source: SourceText) -> bool:
    lowered = source.masked.lower()
    return any(k in lowered for k in ORACLE_MITIGATION_KEYWORDS)


def _no_oracle_mitigation(
    source: SourceText, _match: re.Match[str]
) -> bool:
    return not source.cached(_has_oracle_mitigation)


SLITHER_RULES: tuple[DetectionRule, ...] = (
    DetectionRule(
        id="reentrancy_complex",
        title="Complex Reentrancy Vulnerability",
        description=(
            "External call followed by state change creates potential "
            "for reentrancy attack with complex execution flow"
        ),
        pattern=_LOW_LEVEL_CALL_RE,
        severity=Severity.HIGH,
        category="Reentrancy",
        recommendation=(
            "Implement checks-effects-interactions pattern. Use "
            "reentrancy guards or OpenZeppelin's ReentrancyGuard."
        ),
        confidence=ConfidenceLevel.HIGH,
        cwe_id="CWE-841",
        swc_id="SWC-107",
        locate=_call_then_write,
    ),
    DetectionRule(
        id="race_condition",
        title="Block Number Race Condition",
        description=(
            "Using block.number for timing can create race conditions "
            "in block propagation"
        ),
        pattern=_BLOCK_NUMBER_RACE_RE,
        severity=Severity.MEDIUM,
        category="Front-Running",
        recommendation=(
            "Use commit-reveal schemes or implement proper time-based "
            "delays with randomness."
        ),
        cwe_id="CWE-664",
        swc_id="SWC-120",
    ),
    DetectionRule(
        id="oracle_manipulation",
        title="Potential Oracle Manipulation",
        description=(
            "Oracle price usage without delay or TWAP mechanism can be "
            "manipulated"
        ),
        pattern=_ORACLE_PRICE_RE,
        severity=Severity.HIGH,
        category="Oracle Manipulation",
        recommendation=(
            "Implement TWAP (Time-Weighted Average Price) or add delay "
            "mechanisms for oracle usage."
        ),
        gate=_no_oracle_mitigation,
    ),
)


def pattern_to_vulnerability(
    pattern: VulnerabilityPattern, match: PatternMatch
) -> Vulnerability:
    """Convert one pattern-library hit into a finding."""
    recommendation = ". ".join(pattern.recommendations)
    if recommendation and not recommendation.endswith("."):
        recommendation += "."
    return Vulnerability(
        id=f"{pattern.id}_{match.line}",
        title=pattern.title,
        description=pattern.description,
        severity=pattern.severity,
        category=pattern.category,
        line_numbers=(match.line,),
        code_snippet=match.snippet,
        recommendation=recommendation,
        cwe_id=pattern.cwe_id,
        swc_id=pattern.swc_id,
        confidence=confidence_from_score(match.confidence),
    )


class SlitherEngine(RuleEngine):
    engine_name = EngineName.SLITHER
    rules = SLITHER_RULES

    def __init__(self, library: PatternLibrary | None = None) -> None:
        self._library = (
            library if library is not None else PatternLibrary()
        )

    def detect(self, source: SourceText) -> list[Vulnerability]:
        findings = [
            pattern_to_vulnerability(detection.pattern, match)
            for detection in self._library.enhance_vulnerability_detection(
                source
            )
            for match in detection.matches
        ]
        findings.extend(run_rules(source, self.rules))
        return findings

    def measure(self, source: SourceText) -> AnalysisMetrics:
        return AnalysisMetrics(
            total_lines=source.line_count,
            complexity_score=source.count(_COMPLEXITY_RE),
            functions_analyzed=source.count(FUNCTION_RE),
            contracts_analyzed=source.count(CONTRACT_RE),
        )
