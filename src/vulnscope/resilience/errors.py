"""Domain errors and failure classification.

Classifies exceptions by category to enable:
- Structured logging (timeout vs engine fault vs bad input)
- A first-class failure reason on every failed engine run
"""

from __future__ import annotations

import asyncio
from enum import Enum


class AnalysisError(Exception):
    """Base class for all analysis failures."""


class ExternalServiceError(AnalysisError):
    """An analysis engine could not complete its run."""

    def __init__(
        self,
        message: str = "External service unavailable",
        *,
        engine: str | None = None,
    ) -> None:
        super().__init__(message)
        self.engine = engine


class EngineTimeoutError(AnalysisError):
    """An engine exceeded its per-run time budget."""

    def __init__(self, engine: str, timeout_seconds: float) -> None:
        super().__init__(
            f"{engine} exceeded {timeout_seconds:g}s time budget"
        )
        self.engine = engine
        self.timeout_seconds = timeout_seconds


class SourceTooLargeError(AnalysisError):
    """Submitted source exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"source is {size} chars, limit is {limit}"
        )
        self.size = size
        self.limit = limit


class ErrorClass(Enum):
    TIMEOUT = "timeout"  # per-engine deadline exceeded
    ENGINE = "engine"  # engine reported it could not finish
    INPUT = "input"  # source rejected before analysis
    UNKNOWN = "unknown"  # unexpected exception type


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an engine failure for reporting.

    Checks the domain types first, then falls back to the builtin
    timeout types raised by ``asyncio.wait_for``.
    """
    if isinstance(error, EngineTimeoutError):
        return ErrorClass.TIMEOUT
    if isinstance(error, SourceTooLargeError):
        return ErrorClass.INPUT
    if isinstance(error, ExternalServiceError):
        return ErrorClass.ENGINE
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT
    return ErrorClass.UNKNOWN
