"""Shared constants: single source of truth for cross-module values.

All magic strings and numbers that appear in 2+ files belong here.
StrEnum members are str-compatible, so downstream code (JSON output,
log lines, report payloads) works unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class Severity(StrEnum):
    """Risk level assigned by the detecting engine."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"


class ConfidenceLevel(StrEnum):
    """Categorical certainty of a finding."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class EngineOutcome(StrEnum):
    """Outcome of a single engine invocation.

    Named EngineOutcome (not EngineStatus) because these values
    describe one run, not the health of the engine.
    """

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class EngineName(StrEnum):
    """Names of the built-in analysis engines."""

    SLITHER = "slither"
    MYTHRIL = "mythril"
    CUSTOM = "custom"


DEFAULT_ENGINES: tuple[str, ...] = (
    EngineName.SLITHER,
    EngineName.CUSTOM,
)

# ── Ordering ─────────────────────────────────────────────

SEVERITY_RANK: dict[str, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}

CONFIDENCE_RANK: dict[str, int] = {
    ConfidenceLevel.LOW: 0,
    ConfidenceLevel.MEDIUM: 1,
    ConfidenceLevel.HIGH: 2,
}

# ── Confidence Thresholds ────────────────────────────────

HIGH_CONFIDENCE_SCORE = 0.8
MEDIUM_CONFIDENCE_SCORE = 0.5
PATTERN_BOOSTER_STEP = 0.1
PATTERN_MITIGATION_PENALTY = 0.3


def confidence_from_score(score: float) -> ConfidenceLevel:
    """Map a numeric match strength to a confidence label.

    Strictly greater than the threshold: 0.8 is MEDIUM, 0.81 is HIGH.
    """
    if score > HIGH_CONFIDENCE_SCORE:
        return ConfidenceLevel.HIGH
    if score > MEDIUM_CONFIDENCE_SCORE:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


# ── Source Heuristics ────────────────────────────────────

SNIPPET_RADIUS = 2
REENTRANCY_LOOKAHEAD_LINES = 2
ORACLE_MITIGATION_KEYWORDS = ("delay", "twap")
COMPLEXITY_KEYWORDS = (
    "if",
    "else",
    "for",
    "while",
    "require",
    "assert",
    "revert",
)

# ── Metric Weights ───────────────────────────────────────

GAS_PER_STORAGE_OP = 20_000
GAS_PER_EXTERNAL_CALL = 5_000
GAS_PER_FUNCTION = 1_000
MYTHRIL_STORAGE_VAR_WEIGHT = 2
MYTHRIL_EXTERNAL_CALL_WEIGHT = 3

# ── Consensus ────────────────────────────────────────────

ADDITIONAL_RECOMMENDATION_PREFIX = "Additional recommendation: "

# ── Security Score ───────────────────────────────────────

MAX_SECURITY_SCORE = 100
SEVERITY_PENALTY: dict[str, int] = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
    Severity.INFO: 0,
}

# ── Misc ─────────────────────────────────────────────────

ERROR_TRUNCATION_CHARS = 200
ID_HEX_LENGTH = 12
