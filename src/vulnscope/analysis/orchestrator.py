"""Engine registry and the orchestrator that fans a source out to engines."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from vulnscope.analysis.engines import AnalyzerEngine, build_default_engines
from vulnscope.analysis.patterns.library import PatternLibrary
from vulnscope.analysis.pipeline import EngineGroup, EngineRun, EngineStage
from vulnscope.analysis.schemas import StaticAnalysisResult
from vulnscope.config import Settings
from vulnscope.constants import ID_HEX_LENGTH
from vulnscope.observability.dispatcher import TraceDispatcher
from vulnscope.observability.emitters import emit_engine_end

logger = logging.getLogger(__name__)


class EngineRegistry:
    """Name -> engine lookup, constructed once and passed in.

    Iteration order is registration order, which fixes the order of
    results handed to consensus.
    """

    def __init__(
        self, engines: Iterable[AnalyzerEngine] | None = None
    ) -> None:
        self._engines: dict[str, AnalyzerEngine] = {}
        for engine in engines or ():
            self.register(engine)

    def register(self, engine: AnalyzerEngine) -> None:
        """Register an engine. Re-registering a name replaces it in place."""
        if engine.name in self._engines:
            logger.warning(
                "event=engine_replaced engine=%s", engine.name
            )
        self._engines[engine.name] = engine

    def get(self, name: str) -> AnalyzerEngine | None:
        return self._engines.get(name)

    def resolve(self, names: Iterable[str]) -> list[AnalyzerEngine]:
        """Requested engines in registration order.

        Unknown names are skipped and duplicates collapse.
        """
        wanted = set(names)
        return [e for n, e in self._engines.items() if n in wanted]

    def unknown(self, names: Iterable[str]) -> list[str]:
        """Requested names with no registered engine, first-seen order."""
        return list(
            dict.fromkeys(n for n in names if n not in self._engines)
        )

    @property
    def names(self) -> list[str]:
        return list(self._engines)

    def __len__(self) -> int:
        return len(self._engines)


def default_registry(library: PatternLibrary | None = None) -> EngineRegistry:
    """Registry holding the built-in slither, mythril and custom engines."""
    return EngineRegistry(build_default_engines(library))


class AnalysisOrchestrator:
    """Runs the requested engines over one source and collects outcomes.

    A failing or slow engine never aborts the batch; its outcome is
    recorded on the matching EngineRun instead.
    """

    def __init__(
        self,
        registry: EngineRegistry,
        *,
        timeout_seconds: float | None = None,
        max_concurrency: int | None = None,
        dispatcher: TraceDispatcher | None = None,
        default_engines: Iterable[str] | None = None,
    ) -> None:
        self.registry = registry
        self.timeout_seconds = timeout_seconds
        self.max_concurrency = max_concurrency
        self.dispatcher = dispatcher
        self.default_engines = (
            list(default_engines)
            if default_engines is not None
            else registry.names
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        registry: EngineRegistry | None = None,
        dispatcher: TraceDispatcher | None = None,
    ) -> AnalysisOrchestrator:
        return cls(
            registry if registry is not None else default_registry(),
            timeout_seconds=settings.engine_timeout_seconds,
            max_concurrency=settings.engine_max_concurrency,
            dispatcher=dispatcher,
            default_engines=settings.default_engines,
        )

    async def run_engines(
        self,
        source_code: str,
        names: Iterable[str] | None = None,
        *,
        trace_id: str | None = None,
    ) -> list[EngineRun]:
        """Run every resolvable engine; one EngineRun per engine."""
        requested = list(names) if names is not None else self.default_engines
        skipped = self.registry.unknown(requested)
        if skipped:
            logger.debug(
                "event=engines_unknown engines=%s", ",".join(skipped)
            )

        group = EngineGroup(
            name="engines",
            stages=[
                EngineStage(engine, timeout=self.timeout_seconds)
                for engine in self.registry.resolve(requested)
            ],
            max_concurrency=self.max_concurrency,
        )
        runs = await group.execute(source_code)

        tid = trace_id or uuid.uuid4().hex[:ID_HEX_LENGTH]
        for run in runs:
            if not run.succeeded:
                logger.warning(
                    "event=engine_failed engine=%s status=%s error=%s",
                    run.engine,
                    run.status,
                    run.error,
                )
            if self.dispatcher is not None:
                await emit_engine_end(
                    self.dispatcher,
                    tid,
                    engine=run.engine,
                    duration_ms=run.duration_ms,
                    ok=run.succeeded,
                    findings=(
                        len(run.result.vulnerabilities)
                        if run.result is not None
                        else 0
                    ),
                    error=run.error,
                )
        return runs

    async def analyze_contract(
        self,
        source_code: str,
        names: Iterable[str] | None = None,
    ) -> list[StaticAnalysisResult]:
        """Results of the engines that completed, in registration order.

        An empty list is a valid outcome: no requested engine was
        registered, or every one of them failed.
        """
        runs = await self.run_engines(source_code, names)
        return [r.result for r in runs if r.result is not None]
