"""Trace handlers for audit events."""

from __future__ import annotations

from typing import Protocol

from vulnscope.observability.events import TraceCategory, TraceEvent


class TraceHandler(Protocol):
    """Receives the audit events of the categories it subscribes to."""

    @property
    def name(self) -> str: ...

    @property
    def categories(self) -> frozenset[TraceCategory]: ...

    async def handle(self, event: TraceEvent) -> None: ...
