"""Custom engine: gas, logic and event-logging checks."""

from __future__ import annotations

import re
from bisect import bisect_left

from vulnscope.analysis.engines.base import (
    CONTRACT_RE,
    FUNCTION_RE,
    STATE_WRITE_RE,
    DetectionRule,
    RuleEngine,
)
from vulnscope.analysis.schemas import AnalysisMetrics
from vulnscope.analysis.source import SourceText
from vulnscope.constants import (
    GAS_PER_EXTERNAL_CALL,
    GAS_PER_FUNCTION,
    GAS_PER_STORAGE_OP,
    ConfidenceLevel,
    EngineName,
    Severity,
)

_LOOP_STORAGE_RE = re.compile(
    r"\bfor\s*\([^)]*\)\s*\{[^}]*?\b\w+\s*\[[^\]\n]+\]"
)
# same name[key] read on two consecutive lines
_DUPLICATE_READ_RE = re.compile(
    r"\b(\w+)\[([\w.]+)\][^\n]*\n[^\n]*?\b\1\[\2\]"
)
_DIVISION_RE = re.compile(r"/=?\s*([A-Za-z_]\w*)")
_CONSTANT_NAME_RE = re.compile(r"[A-Z][A-Z0-9_]*")
_EMIT_RE = re.compile(r"\bemit\s+\w+")
# require(x > 0), require(x != 0), require(0 < x), if (x == 0)
_ZERO_GUARD_RE = re.compile(
    r"\brequire\s*\(\s*(?P<gt>[A-Za-z_]\w*)\s*(?:>|!=)\s*0\b"
    r"|\brequire\s*\(\s*0\s*(?:<|!=)\s*(?P<lt>[A-Za-z_]\w*)\b"
    r"|\bif\s*\(\s*(?P<eq>[A-Za-z_]\w*)\s*==\s*0\b"
)

_STORAGE_READ_RE = re.compile(r"(?<![=!<>])=(?!=)\s*\w+\s*\[")
_VALUE_CALL_RE = re.compile(
    r"\.\s*(?:call|delegatecall|staticcall|transfer|send)\b"
)

type Span = tuple[int, int]


def _zero_guards(source: SourceText) -> dict[str, list[Span]]:
    """Zero-check spans per variable name, in source order."""
    guards: dict[str, list[Span]] = {}
    for m in _ZERO_GUARD_RE.finditer(source.masked):
        name = m.group("gt") or m.group("lt") or m.group("eq")
        guards.setdefault(name, []).append(m.span())
    return guards


def _emit_spans(source: SourceText) -> list[Span]:
    return [m.span() for m in _EMIT_RE.finditer(source.masked)]


def _first_within(spans: list[Span], lo: int, hi: int) -> bool:
    """True if some span starts at or after ``lo`` and ends by ``hi``.

    ``spans`` are non-overlapping and sorted, so only the first span
    starting at or after ``lo`` needs checking.
    """
    idx = bisect_left(spans, (lo,))
    return idx < len(spans) and spans[idx][1] <= hi


def _unchecked_divisor(source: SourceText, match: re.Match[str]) -> bool:
    """True unless the divisor is a constant or was checked for zero.

    The zero check has to sit between the start of the enclosing
    function (or of the file, outside any function) and the division.
    """
    divisor = match.group(1)
    if _CONSTANT_NAME_RE.fullmatch(divisor):
        return False
    scope = source.function_scope(source.line_at(match.start()))
    floor = scope.start_offset if scope is not None else 0
    guards = source.cached(_zero_guards).get(divisor, [])
    return not _first_within(guards, floor, match.start())


def _no_event_in_scope(source: SourceText, match: re.Match[str]) -> bool:
    scope = source.function_scope(source.line_at(match.start()))
    return scope is not None and not _first_within(
        source.cached(_emit_spans), scope.start_offset, scope.end_offset
    )


CUSTOM_RULES: tuple[DetectionRule, ...] = (
    DetectionRule(
        id="gas_loop",
        title="Gas-Intensive Loop with Storage Operations",
        description=(
            "Loop that performs storage operations can cause high "
            "gas costs"
        ),
        pattern=_LOOP_STORAGE_RE,
        severity=Severity.MEDIUM,
        category="Gas Optimization",
        recommendation=(
            "Consider using mappings or batch operations to reduce "
            "gas costs."
        ),
    ),
    DetectionRule(
        id="gas_storage",
        title="Duplicate Storage Read",
        description=(
            "Same storage variable read multiple times without "
            "modification"
        ),
        pattern=_DUPLICATE_READ_RE,
        severity=Severity.LOW,
        category="Gas Optimization",
        recommendation=(
            "Cache storage reads in local variables to reduce gas costs."
        ),
        confidence=ConfidenceLevel.HIGH,
        snippet_radius=1,
    ),
    DetectionRule(
        id="division",
        title="Potential Division by Zero",
        description="Division operation without zero check can cause revert",
        pattern=_DIVISION_RE,
        severity=Severity.MEDIUM,
        category="Logic Error",
        recommendation=(
            "Add zero check before division operations or use SafeMath."
        ),
        confidence=ConfidenceLevel.LOW,
        gate=_unchecked_divisor,
        snippet_radius=0,
    ),
    DetectionRule(
        id="event",
        title="Missing Event for State Change",
        description="State change without corresponding event emission",
        pattern=STATE_WRITE_RE,
        severity=Severity.LOW,
        category="Event Logging",
        recommendation=(
            "Emit events for important state changes to improve "
            "transparency."
        ),
        gate=_no_event_in_scope,
        snippet_radius=0,
    ),
)


class CustomPatternEngine(RuleEngine):
    engine_name = EngineName.CUSTOM
    rules = CUSTOM_RULES

    def measure(self, source: SourceText) -> AnalysisMetrics:
        functions = source.count(FUNCTION_RE)
        storage_ops = source.count(STATE_WRITE_RE) + source.count(
            _STORAGE_READ_RE
        )
        external_calls = source.count(_VALUE_CALL_RE)
        return AnalysisMetrics(
            total_lines=source.line_count,
            complexity_score=functions + storage_ops + external_calls,
            functions_analyzed=functions,
            contracts_analyzed=source.count(CONTRACT_RE),
            gas_estimate=(
                storage_ops * GAS_PER_STORAGE_OP
                + external_calls * GAS_PER_EXTERNAL_CALL
                + functions * GAS_PER_FUNCTION
            ),
        )
