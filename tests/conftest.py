"""Shared test fixtures: Solidity sources and scripted engines."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from vulnscope.analysis.schemas import (
    AnalysisMetrics,
    StaticAnalysisResult,
    Vulnerability,
)
from vulnscope.constants import ConfidenceLevel, Severity
from vulnscope.resilience.errors import ExternalServiceError

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def make_vuln(
    title: str = "Finding",
    lines: tuple[int, ...] = (1,),
    *,
    severity: Severity = Severity.MEDIUM,
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM,
    recommendation: str = "Fix it.",
    category: str = "Logic Error",
) -> Vulnerability:
    return Vulnerability(
        id=f"{title.lower().replace(' ', '_')}_{lines[0]}",
        title=title,
        description=f"{title} description",
        severity=severity,
        category=category,
        line_numbers=lines,
        recommendation=recommendation,
        confidence=confidence,
    )


def make_result(
    tool: str,
    vulns: list[Vulnerability] | None = None,
    metrics: AnalysisMetrics | None = None,
) -> StaticAnalysisResult:
    return StaticAnalysisResult(
        tool=tool,
        vulnerabilities=vulns or [],
        metrics=metrics or AnalysisMetrics(),
    )


class StubEngine:
    """Engine returning a canned result, optionally after a delay."""

    def __init__(
        self,
        name: str,
        vulns: list[Vulnerability] | None = None,
        *,
        delay: float = 0.0,
    ) -> None:
        self._name = name
        self._vulns = vulns or []
        self._delay = delay
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    def analyze(self, source_code: str) -> StaticAnalysisResult:
        self.calls += 1
        if self._delay:
            time.sleep(self._delay)
        return make_result(self._name, list(self._vulns))


class ExplodingEngine:
    """Engine whose analyze always raises."""

    def __init__(
        self, name: str = "exploding", exc: Exception | None = None
    ) -> None:
        self._name = name
        self._exc = exc or ExternalServiceError(engine=name)

    @property
    def name(self) -> str:
        return self._name

    def analyze(self, source_code: str) -> StaticAnalysisResult:
        raise self._exc


@pytest.fixture
def vulnerable_source() -> str:
    return load_fixture("vulnerable_bank.sol")


@pytest.fixture
def clean_source() -> str:
    return load_fixture("clean_registry.sol")


@pytest.fixture
def clock_source() -> str:
    return load_fixture("clock.sol")
