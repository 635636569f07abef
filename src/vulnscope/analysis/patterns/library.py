"""Queryable catalogue of named vulnerability patterns."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from vulnscope.analysis.source import SourceText
from vulnscope.constants import (
    PATTERN_BOOSTER_STEP,
    PATTERN_MITIGATION_PENALTY,
    Severity,
)


@dataclass(frozen=True)
class VulnerabilityPattern:
    """A named pattern: matcher plus static metadata.

    ``base_confidence`` is the match strength before context
    adjustment. Each booster found anywhere in the source adds
    PATTERN_BOOSTER_STEP; any mitigation found subtracts
    PATTERN_MITIGATION_PENALTY once. ``applies`` gates the whole
    pattern on a source-level precondition (e.g. compiler version).
    """

    id: str
    title: str
    description: str
    severity: Severity
    category: str
    matcher: re.Pattern[str]
    recommendations: tuple[str, ...]
    base_confidence: float
    cwe_id: str | None = None
    swc_id: str | None = None
    applies: Callable[[SourceText], bool] | None = None
    boosters: tuple[re.Pattern[str], ...] = field(default=())
    mitigations: tuple[re.Pattern[str], ...] = field(default=())


@dataclass(frozen=True)
class PatternMatch:
    line: int
    snippet: str
    confidence: float


@dataclass(frozen=True)
class PatternDetection:
    """All matches of one pattern in one source."""

    pattern: VulnerabilityPattern
    matches: list[PatternMatch]


def _score(pattern: VulnerabilityPattern, source: SourceText) -> float:
    score = pattern.base_confidence
    score += PATTERN_BOOSTER_STEP * sum(
        1 for b in pattern.boosters if b.search(source.masked)
    )
    if any(m.search(source.masked) for m in pattern.mitigations):
        score -= PATTERN_MITIGATION_PENALTY
    return round(min(1.0, max(0.0, score)), 4)


class PatternLibrary:
    """Lookup table of vulnerability patterns, queried by engines."""

    def __init__(
        self, patterns: Iterable[VulnerabilityPattern] | None = None
    ) -> None:
        if patterns is None:
            from vulnscope.analysis.patterns.catalog import CATALOG

            patterns = CATALOG
        self._patterns: dict[str, VulnerabilityPattern] = {}
        for p in patterns:
            if p.id in self._patterns:
                raise ValueError(f"duplicate pattern id: {p.id}")
            self._patterns[p.id] = p

    def __len__(self) -> int:
        return len(self._patterns)

    def all_patterns(self) -> list[VulnerabilityPattern]:
        return list(self._patterns.values())

    def get(self, pattern_id: str) -> VulnerabilityPattern | None:
        return self._patterns.get(pattern_id)

    def by_category(self) -> dict[str, list[VulnerabilityPattern]]:
        """Patterns grouped by category, in catalogue order."""
        groups: dict[str, list[VulnerabilityPattern]] = {}
        for p in self._patterns.values():
            groups.setdefault(p.category, []).append(p)
        return groups

    def enhance_vulnerability_detection(
        self, source_code: str | SourceText
    ) -> list[PatternDetection]:
        """Run every pattern over the source.

        Returns one detection per pattern that matched at least
        once, with at most one match per line.
        """
        source = (
            source_code
            if isinstance(source_code, SourceText)
            else SourceText(source_code)
        )
        detections: list[PatternDetection] = []
        for pattern in self._patterns.values():
            if pattern.applies is not None and not pattern.applies(source):
                continue
            seen_lines: set[int] = set()
            matches: list[PatternMatch] = []
            score: float | None = None
            for m in pattern.matcher.finditer(source.masked):
                line = source.line_at(m.start())
                if line in seen_lines:
                    continue
                seen_lines.add(line)
                if score is None:
                    score = _score(pattern, source)
                matches.append(
                    PatternMatch(
                        line=line,
                        snippet=source.line_text(line).strip(),
                        confidence=score,
                    )
                )
            if matches:
                detections.append(
                    PatternDetection(pattern=pattern, matches=matches)
                )
        return detections
