"""Per-audit engine timing summary."""

from __future__ import annotations

from dataclasses import dataclass, field

from vulnscope.observability.events import TraceCategory, TraceEvent


@dataclass
class EngineStats:
    """Engine runs recorded for one audit."""

    runs: int = 0
    failures: int = 0
    findings: int = 0
    total_duration_ms: float = 0.0
    durations_ms: dict[str, float] = field(
        default_factory=lambda: dict[str, float]()
    )
    failed_engines: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def summary_lines(self) -> list[str]:
        """Header line plus one timing line per engine, in run order."""
        lines = [
            f"Engine timings: {self.runs} run(s), "
            f"{self.failures} failed, {self.findings} finding(s), "
            f"{self.total_duration_ms:.1f} ms total"
        ]
        width = max((len(name) for name in self.durations_ms), default=0)
        for engine, ms in self.durations_ms.items():
            mark = "  FAILED" if engine in self.failed_engines else ""
            lines.append(f"  {engine:<{width}}  {ms:8.1f} ms{mark}")
        return lines


class EngineStatsHandler:
    """Collects ``engine_end`` events per trace_id until popped."""

    categories: frozenset[TraceCategory] = frozenset({"engine"})

    def __init__(self) -> None:
        self._stats: dict[str, EngineStats] = {}

    @property
    def name(self) -> str:
        return "engine_stats"

    async def handle(self, event: TraceEvent) -> None:
        if event.type != "engine_end":
            return
        stats = self._stats.setdefault(event.trace_id, EngineStats())
        engine = str(event.data.get("engine", "unknown"))
        duration = float(event.data.get("duration_ms", 0.0))
        stats.runs += 1
        stats.total_duration_ms += duration
        stats.durations_ms[engine] = duration
        if event.data.get("ok"):
            stats.findings += int(event.data.get("findings", 0))
        else:
            stats.failures += 1
            stats.failed_engines.append(engine)

    def pop_stats(self, trace_id: str) -> EngineStats:
        """Remove and return the stats of one audit, empty if none."""
        return self._stats.pop(trace_id, EngineStats())
