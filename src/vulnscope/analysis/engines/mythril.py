"""Mythril-style engine: opcode-level hazards read from source text."""

from __future__ import annotations

import re

from vulnscope.analysis.engines.base import (
    CONTRACT_RE,
    EXTERNAL_CALL_RE,
    FUNCTION_RE,
    DetectionRule,
    RuleEngine,
)
from vulnscope.analysis.schemas import AnalysisMetrics
from vulnscope.analysis.source import SourceText
from vulnscope.constants import (
    MYTHRIL_EXTERNAL_CALL_WEIGHT,
    MYTHRIL_STORAGE_VAR_WEIGHT,
    ConfidenceLevel,
    EngineName,
    Severity,
)

_SELFDESTRUCT_RE = re.compile(r"\b(?:selfdestruct|suicide)\s*\([^)\n]*\)")
_DELEGATECALL_RE = re.compile(r"\bdelegatecall\s*\(")
_TIMESTAMP_RE = re.compile(r"\bblock\.timestamp\b|\bnow\b")

# `target.delegatecall(` or `address(target).delegatecall(`
_TARGET_BEFORE_RE = re.compile(r"([A-Za-z_]\w*)\s*\)?\s*\.\s*$")
# assembly: delegatecall(gas(), target, ...)
_ASSEMBLY_TARGET_RE = re.compile(
    r"\s*(?:\w+\s*\(\s*\)|[\w.]+)\s*,\s*([A-Za-z_]\w*)"
)

_STATE_VAR_RE = re.compile(
    r"(?:\b\w+|\))\s+(?:public|private|internal)\b"
)
_NOT_STATE_VAR_LINE_RE = re.compile(r"\b(?:function|constructor|event|modifier)\b")
# rest of the statement after the keyword, up to and including its `;`
_FIXED_DECL_RE = re.compile(r"\b(?:constant|immutable)\b([^;\n]*;?)")
_DECLARED_NAME_RE = re.compile(r"\b([A-Za-z_]\w*)\s*[=;]")


def _delegate_target(
    source: SourceText, match: re.Match[str]
) -> str | None:
    """Identifier the delegatecall is made to, if it can be read."""
    line_start = source.masked.rfind("\n", 0, match.start()) + 1
    before = _TARGET_BEFORE_RE.search(
        source.masked[line_start:match.start()]
    )
    if before:
        return before.group(1)
    line_end = source.masked.find("\n", match.end())
    if line_end == -1:
        line_end = len(source.masked)
    args = _ASSEMBLY_TARGET_RE.match(
        source.masked[match.end():line_end]
    )
    return args.group(1) if args else None


def _fixed_addresses(source: SourceText) -> frozenset[str]:
    """Names assigned or declared on a constant or immutable line."""
    return frozenset(
        name
        for m in _FIXED_DECL_RE.finditer(source.masked)
        for name in _DECLARED_NAME_RE.findall(m.group(1))
    )


def _untrusted_delegate_target(
    source: SourceText, match: re.Match[str]
) -> bool:
    """False when the target is a constant or immutable address."""
    target = _delegate_target(source, match)
    return target is None or target not in source.cached(_fixed_addresses)


MYTHRIL_RULES: tuple[DetectionRule, ...] = (
    DetectionRule(
        id="selfdestruct",
        title="Selfdestruct Usage Detected",
        description=(
            "Selfdestruct can be used maliciously to destroy contracts "
            "and drain funds"
        ),
        pattern=_SELFDESTRUCT_RE,
        severity=Severity.CRITICAL,
        category="Denial of Service",
        recommendation=(
            "Avoid using selfdestruct. Consider using upgrade patterns "
            "or pausable contracts instead."
        ),
        confidence=ConfidenceLevel.HIGH,
        cwe_id="CWE-755",
        swc_id="SWC-106",
    ),
    DetectionRule(
        id="delegatecall",
        title="Dangerous Delegatecall",
        description=(
            "Delegatecall to user-supplied address can lead to code "
            "injection"
        ),
        pattern=_DELEGATECALL_RE,
        severity=Severity.CRITICAL,
        category="Delegatecall",
        recommendation=(
            "Avoid delegatecall to user-supplied addresses. Use "
            "verified implementation contracts."
        ),
        confidence=ConfidenceLevel.HIGH,
        cwe_id="CWE-94",
        swc_id="SWC-112",
        gate=_untrusted_delegate_target,
    ),
    DetectionRule(
        id="timestamp",
        title="Timestamp Dependence",
        description=(
            "Using block.timestamp for critical logic can be "
            "manipulated by miners"
        ),
        pattern=_TIMESTAMP_RE,
        severity=Severity.LOW,
        category="Bad Randomness",
        recommendation=(
            "Avoid using block.timestamp for critical operations. Use "
            "block.number or external randomness sources."
        ),
        cwe_id="CWE-642",
        swc_id="SWC-116",
    ),
)


def _count_state_variables(source: SourceText) -> int:
    return sum(
        len(_STATE_VAR_RE.findall(line))
        for line in source.masked_lines
        if not _NOT_STATE_VAR_LINE_RE.search(line)
    )


class MythrilEngine(RuleEngine):
    engine_name = EngineName.MYTHRIL
    rules = MYTHRIL_RULES

    def measure(self, source: SourceText) -> AnalysisMetrics:
        # Symbolic-execution cost proxy: state to track, calls to fork on
        complexity = (
            _count_state_variables(source) * MYTHRIL_STORAGE_VAR_WEIGHT
            + source.count(EXTERNAL_CALL_RE) * MYTHRIL_EXTERNAL_CALL_WEIGHT
        )
        return AnalysisMetrics(
            total_lines=source.line_count,
            complexity_score=complexity,
            functions_analyzed=source.count(FUNCTION_RE),
            contracts_analyzed=source.count(CONTRACT_RE),
        )
