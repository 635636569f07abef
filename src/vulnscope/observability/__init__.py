"""Observability layer: audit trace events routed to handlers."""

from __future__ import annotations

from vulnscope.config import Settings
from vulnscope.observability.dispatcher import TraceDispatcher
from vulnscope.observability.events import (
    ALL_CATEGORIES,
    TraceCategory,
    TraceEvent,
    TraceEventType,
)
from vulnscope.observability.handlers.console import (
    ConsoleTraceHandler,
)
from vulnscope.observability.handlers.engine_stats import (
    EngineStatsHandler,
)

__all__ = [
    "ALL_CATEGORIES",
    "EngineStatsHandler",
    "TraceCategory",
    "TraceDispatcher",
    "TraceEvent",
    "TraceEventType",
    "initialize_tracing",
]


def initialize_tracing(settings: Settings) -> TraceDispatcher:
    """Create a dispatcher with the console handler when tracing is on."""
    dispatcher = TraceDispatcher()

    if not settings.trace_enabled:
        return dispatcher

    dispatcher.register(ConsoleTraceHandler())
    return dispatcher
