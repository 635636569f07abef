"""Heuristic smart-contract analysis: engines, orchestration, consensus."""

from vulnscope.analysis.consensus import (
    aggregate_metrics,
    get_consensus_analysis,
    merge_confidence,
)
from vulnscope.analysis.orchestrator import (
    AnalysisOrchestrator,
    EngineRegistry,
    default_registry,
)
from vulnscope.analysis.pipeline import EngineGroup, EngineRun, EngineStage
from vulnscope.analysis.schemas import (
    AnalysisMetrics,
    ConsensusResult,
    StaticAnalysisResult,
    Vulnerability,
)

__all__ = [
    "AnalysisMetrics",
    "AnalysisOrchestrator",
    "ConsensusResult",
    "EngineGroup",
    "EngineRegistry",
    "EngineRun",
    "EngineStage",
    "StaticAnalysisResult",
    "Vulnerability",
    "aggregate_metrics",
    "default_registry",
    "get_consensus_analysis",
    "merge_confidence",
]
