"""Analysis engines: independent heuristic detectors over one source."""

from vulnscope.analysis.engines.base import (
    AnalyzerEngine,
    DetectionRule,
    RuleEngine,
    run_rules,
)
from vulnscope.analysis.engines.custom import CustomPatternEngine
from vulnscope.analysis.engines.mythril import MythrilEngine
from vulnscope.analysis.engines.slither import SlitherEngine
from vulnscope.analysis.patterns.library import PatternLibrary


def build_default_engines(
    library: PatternLibrary | None = None,
) -> list[AnalyzerEngine]:
    """The built-in engines, in registration order."""
    return [
        SlitherEngine(library),
        MythrilEngine(),
        CustomPatternEngine(),
    ]


__all__ = [
    "AnalyzerEngine",
    "CustomPatternEngine",
    "DetectionRule",
    "MythrilEngine",
    "RuleEngine",
    "SlitherEngine",
    "build_default_engines",
    "run_rules",
]
