"""Console trace handler: one log line per audit event."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from vulnscope.observability.events import (
    ALL_CATEGORIES,
    TraceCategory,
    TraceEvent,
)

logger = logging.getLogger(__name__)


def _audit_start(data: dict[str, Any]) -> str:
    return (
        f"engines={data.get('engines') or '-'} "
        f"source_chars={data.get('source_chars', 0)}"
    )


def _audit_end(data: dict[str, Any]) -> str:
    return (
        f"analyzed={data.get('success')} "
        f"duration_ms={float(data.get('duration_ms', 0.0)):.1f}"
    )


def _engine_end(data: dict[str, Any]) -> str:
    outcome = "ok" if data.get("ok") else "failed"
    text = (
        f"engine={data.get('engine', 'unknown')} outcome={outcome} "
        f"findings={data.get('findings', 0)} "
        f"duration_ms={float(data.get('duration_ms', 0.0)):.1f}"
    )
    if not data.get("ok") and data.get("error"):
        text += f" error={data['error']!r}"
    return text


def _consensus(data: dict[str, Any]) -> str:
    raw = int(data.get("raw_findings", 0))
    unique = int(data.get("unique_findings", 0))
    return (
        f"raw_findings={raw} unique_findings={unique} "
        f"merged={raw - unique} "
        f"confidence={float(data.get('confidence', 0.0)):.2f}"
    )


_RENDERERS: dict[str, tuple[str, Callable[[dict[str, Any]], str]]] = {
    "analysis_start": ("audit_start", _audit_start),
    "analysis_end": ("audit_end", _audit_end),
    "engine_end": ("engine_end", _engine_end),
    "consensus": ("consensus", _consensus),
}


class ConsoleTraceHandler:
    """Logs audit progress, one line per event.

    Audit start lists the requested engines. An engine line carries
    outcome, finding count and duration, plus the error of a failed
    run. The consensus line shows how many raw findings were merged
    away.
    """

    categories: frozenset[TraceCategory] = ALL_CATEGORIES

    @property
    def name(self) -> str:
        return "console"

    async def handle(self, event: TraceEvent) -> None:
        label, render = _RENDERERS[event.type]
        logger.info(
            "event=%s trace_id=%s %s",
            label,
            event.trace_id,
            render(event.data),
        )
