"""Engine protocol, declarative detection rules and the rule runner."""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import ClassVar, Protocol

from vulnscope.analysis.schemas import (
    AnalysisMetrics,
    StaticAnalysisResult,
    Vulnerability,
)
from vulnscope.analysis.source import SourceText
from vulnscope.constants import SNIPPET_RADIUS, ConfidenceLevel, Severity
from vulnscope.resilience.errors import ExternalServiceError

logger = logging.getLogger(__name__)

CONTRACT_RE = re.compile(r"\bcontract\s+\w+")
FUNCTION_RE = re.compile(r"\bfunction\s+\w+")
EXTERNAL_CALL_RE = re.compile(r"\.\s*(?:call|delegatecall|staticcall)\b")
# name[key] = ..., name[key] -= ..., nested mappings included
STATE_WRITE_RE = re.compile(
    r"\b\w+\s*\[[^\]\n]+\](?:\s*\[[^\]\n]+\])*\s*"
    r"(?:[-+*/%|&^]|<<|>>)?=(?!=)"
)

type MatchGate = Callable[[SourceText, re.Match[str]], bool]
type LineLocator = Callable[
    [SourceText, re.Match[str]], tuple[int, ...] | None
]


class AnalyzerEngine(Protocol):
    """Pluggable detection strategy -- a pure function of the source."""

    @property
    def name(self) -> str: ...

    def analyze(self, source_code: str) -> StaticAnalysisResult: ...


@dataclass(frozen=True)
class DetectionRule:
    """What to detect, separated from how the source is scanned.

    ``gate`` returns False to suppress a match (false-positive
    gating). ``locate`` overrides the reported line span; returning
    None also suppresses the match.
    """

    id: str
    title: str
    description: str
    pattern: re.Pattern[str]
    severity: Severity
    category: str
    recommendation: str
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    cwe_id: str | None = None
    swc_id: str | None = None
    gate: MatchGate | None = None
    locate: LineLocator | None = None
    snippet_radius: int = SNIPPET_RADIUS


def run_rules(
    source: SourceText, rules: Iterable[DetectionRule]
) -> list[Vulnerability]:
    """Evaluate each rule against the masked source.

    A rule reports a given line span at most once, so two matches on
    one line collapse into one finding.
    """
    findings: list[Vulnerability] = []
    for rule in rules:
        seen: set[tuple[int, ...]] = set()
        for m in rule.pattern.finditer(source.masked):
            if rule.gate is not None and not rule.gate(source, m):
                continue
            lines = (
                rule.locate(source, m)
                if rule.locate is not None
                else (source.line_at(m.start()),)
            )
            if not lines or lines in seen:
                continue
            seen.add(lines)
            findings.append(
                Vulnerability(
                    id=f"{rule.id}_{lines[0]}",
                    title=rule.title,
                    description=rule.description,
                    severity=rule.severity,
                    category=rule.category,
                    line_numbers=lines,
                    code_snippet=source.snippet(
                        lines[0], rule.snippet_radius
                    ),
                    recommendation=rule.recommendation,
                    cwe_id=rule.cwe_id,
                    swc_id=rule.swc_id,
                    confidence=rule.confidence,
                )
            )
    return findings


class RuleEngine(ABC):
    """Base for engines driven by a rule table.

    Subclasses set ``engine_name`` and ``rules`` and implement
    ``measure``. Any internal failure surfaces as
    ExternalServiceError so callers see one error type per engine.
    """

    engine_name: ClassVar[str] = ""
    rules: ClassVar[tuple[DetectionRule, ...]] = ()

    @property
    def name(self) -> str:
        return self.engine_name

    def analyze(self, source_code: str) -> StaticAnalysisResult:
        start = time.monotonic()
        try:
            source = SourceText(source_code)
            vulnerabilities = self.detect(source)
            metrics = self.measure(source)
        except Exception as exc:
            logger.debug(
                "event=engine_internal_error engine=%s",
                self.name,
                exc_info=True,
            )
            raise ExternalServiceError(
                f"{self.name} analysis failed", engine=self.name
            ) from exc
        return StaticAnalysisResult(
            tool=self.name,
            vulnerabilities=vulnerabilities,
            metrics=metrics,
            execution_time_ms=(time.monotonic() - start) * 1000,
        )

    def detect(self, source: SourceText) -> list[Vulnerability]:
        return run_rules(source, self.rules)

    @abstractmethod
    def measure(self, source: SourceText) -> AnalysisMetrics:
        """Size and complexity figures for this engine."""
