"""Pydantic models for analysis output."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vulnscope.constants import ConfidenceLevel, Severity


class Vulnerability(BaseModel):
    """A single finding emitted by an engine.

    Frozen once emitted. Consensus produces updated copies via
    ``model_copy`` and only ever changes ``confidence`` and
    ``recommendation``; ``title`` and ``line_numbers`` are the
    identity and ``severity`` belongs to the detecting engine.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    severity: Severity
    category: str
    line_numbers: tuple[int, ...]
    code_snippet: str = ""
    recommendation: str = ""
    cwe_id: str | None = None
    swc_id: str | None = None
    confidence: ConfidenceLevel

    @field_validator("line_numbers")
    @classmethod
    def _positive_lines(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if any(n < 1 for n in v):
            raise ValueError(
                f"line numbers are 1-indexed, got {list(v)}"
            )
        return v

    @property
    def identity_key(self) -> str:
        """Title and line numbers joined with ``_``, for display.

        Not unique: a title that itself ends in ``_<n>`` can collide.
        Consensus keys on the ``(title, line_numbers)`` pair instead.
        """
        return "_".join(
            [self.title, *(str(n) for n in self.line_numbers)]
        )


class AnalysisMetrics(BaseModel):
    """Size and complexity estimates from one engine run."""

    model_config = ConfigDict(frozen=True)

    total_lines: int = Field(default=0, ge=0)
    complexity_score: float = Field(default=0, ge=0)
    functions_analyzed: int = Field(default=0, ge=0)
    contracts_analyzed: int = Field(default=0, ge=0)
    gas_estimate: int | None = Field(default=None, ge=0)


class StaticAnalysisResult(BaseModel):
    """Output of one engine invocation."""

    tool: str
    vulnerabilities: list[Vulnerability] = Field(
        default_factory=lambda: list[Vulnerability]()
    )
    metrics: AnalysisMetrics = Field(default_factory=AnalysisMetrics)
    execution_time_ms: float = Field(default=0.0, ge=0)


class ConsensusResult(BaseModel):
    """Deduplicated findings merged across engines."""

    vulnerabilities: list[Vulnerability] = Field(
        default_factory=lambda: list[Vulnerability]()
    )
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    metrics: AnalysisMetrics = Field(default_factory=AnalysisMetrics)
