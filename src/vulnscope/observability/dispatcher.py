"""Category-routed dispatcher for audit trace events."""

from __future__ import annotations

import logging

from vulnscope.observability.events import (
    ALL_CATEGORIES,
    TraceCategory,
    TraceEvent,
)
from vulnscope.observability.handlers import TraceHandler

logger = logging.getLogger(__name__)


class TraceDispatcher:
    """Routes each event to the handlers subscribed to its category.

    An engine-timing handler never sees audit or consensus events.
    Delivery is best effort: a failing handler is logged and the
    remaining subscribers still receive the event.
    """

    def __init__(self) -> None:
        self._names: set[str] = set()
        self._routes: dict[TraceCategory, list[TraceHandler]] = {
            category: [] for category in ALL_CATEGORIES
        }

    def register(self, handler: TraceHandler) -> None:
        """Subscribe a handler; a repeated name is ignored."""
        if handler.name in self._names:
            logger.debug(
                "event=trace_handler_duplicate handler=%s", handler.name
            )
            return
        self._names.add(handler.name)
        for category in handler.categories:
            self._routes[category].append(handler)

    async def emit(self, event: TraceEvent) -> None:
        for handler in self._routes[event.category]:
            try:
                await handler.handle(event)
            except Exception:
                logger.warning(
                    "event=trace_handler_error handler=%s "
                    "trace_type=%s trace_id=%s",
                    handler.name,
                    event.type,
                    event.trace_id,
                )

    @property
    def handler_count(self) -> int:
        return len(self._names)
