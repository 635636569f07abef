"""Typed trace events emitted during an audit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, get_args

TraceEventType = Literal[
    "analysis_start",
    "analysis_end",
    "engine_end",
    "consensus",
]

TraceCategory = Literal[
    "audit",
    "engine",
    "consensus",
]

ALL_CATEGORIES: frozenset[TraceCategory] = frozenset(get_args(TraceCategory))


@dataclass(frozen=True)
class TraceEvent:
    """Immutable trace event emitted during an audit."""

    type: TraceEventType
    trace_id: str
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(UTC)
    )
    category: TraceCategory = "audit"
    data: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )
