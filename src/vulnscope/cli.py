"""CLI entry point: ``vulnscope analyze`` and ``vulnscope patterns``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from vulnscope import __version__
from vulnscope.analysis.orchestrator import default_registry
from vulnscope.analysis.patterns.library import PatternLibrary
from vulnscope.config import Settings
from vulnscope.constants import SEVERITY_RANK, Severity
from vulnscope.logging_config import setup_logging
from vulnscope.resilience.errors import SourceTooLargeError
from vulnscope.services.audit_service import AuditReport

EXIT_INPUT_ERROR = 1
EXIT_THRESHOLD_MET = 2


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"vulnscope {__version__}")
        return

    if args.command == "analyze":
        _run_analyze(args)
    elif args.command == "patterns":
        _run_patterns()
    else:
        parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vulnscope",
        description=(
            "Multi-engine vulnerability scanner for Solidity "
            "smart contracts."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )

    sub = parser.add_subparsers(dest="command")

    analyze = sub.add_parser(
        "analyze",
        help="Analyze a contract source file",
    )
    analyze.add_argument(
        "contract",
        type=str,
        help="Path to a Solidity source file",
    )
    analyze.add_argument(
        "--engines",
        "-e",
        type=str,
        default=None,
        help=(
            "Comma-separated engine names "
            "(default: VULNSCOPE_DEFAULT_ENGINES)"
        ),
    )
    analyze.add_argument(
        "--format",
        "-f",
        choices=["text", "json"],
        default="text",
        help="Report format (default: text)",
    )
    analyze.add_argument(
        "--output",
        "-o",
        default=None,
        help="Write the report to this file instead of stdout",
    )
    analyze.add_argument(
        "--fail-on",
        choices=[s.value for s in Severity],
        default=None,
        type=str.upper,
        help=(
            "Exit with status 2 if any finding is at or above "
            "this severity"
        ),
    )
    analyze.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )

    sub.add_parser(
        "patterns",
        help="List the built-in vulnerability patterns",
    )

    return parser


def _run_analyze(args: argparse.Namespace) -> None:
    """Execute the analyze command."""
    from vulnscope.observability import (
        EngineStatsHandler,
        TraceDispatcher,
        initialize_tracing,
    )
    from vulnscope.services.audit_service import run_audit

    settings = Settings()
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    path = Path(args.contract)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Error: cannot read {path}: {exc}", file=sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    engines = (
        [s.strip() for s in args.engines.split(",") if s.strip()]
        if args.engines
        else None
    )
    if engines is not None:
        known = default_registry().names
        for name in engines:
            if name not in known:
                print(
                    f"Warning: unknown engine '{name}'. "
                    f"Valid: {', '.join(known)}",
                    file=sys.stderr,
                )

    dispatcher: TraceDispatcher | None = None
    engine_stats: EngineStatsHandler | None = None
    if args.verbose:
        dispatcher = initialize_tracing(settings)
        engine_stats = EngineStatsHandler()
        dispatcher.register(engine_stats)

    try:
        report = asyncio.run(
            run_audit(
                source,
                engines,
                settings=settings,
                dispatcher=dispatcher,
            )
        )
    except SourceTooLargeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    if engine_stats is not None:
        for line in engine_stats.pop_stats(report.trace_id).summary_lines():
            print(line, file=sys.stderr)

    rendered = (
        report.model_dump_json(indent=2)
        if args.format == "json"
        else _render_text(report, path.name)
    )
    if args.output:
        Path(args.output).write_text(rendered + "\n", encoding="utf-8")
        print(f"Report written to {args.output}", file=sys.stderr)
    else:
        print(rendered)

    if args.fail_on and _threshold_met(report, Severity(args.fail_on)):
        sys.exit(EXIT_THRESHOLD_MET)


def _threshold_met(report: AuditReport, threshold: Severity) -> bool:
    floor = SEVERITY_RANK[threshold]
    return any(
        SEVERITY_RANK[v.severity] >= floor
        for v in report.consensus.vulnerabilities
    )


def _render_text(report: AuditReport, label: str) -> str:
    """Human-readable report, most severe findings first."""
    summary = report.summary
    lines = [
        f"Audit {report.audit_id}: {label}",
        (
            f"Risk: {summary.risk_level}  "
            f"Score: {summary.security_score}/100  "
            f"Confidence: {summary.confidence_pct}%"
        ),
        f"Engines: {', '.join(report.engines_completed) or 'none'}",
    ]
    for failure in report.engines_failed:
        lines.append(
            f"  [{failure.status}] {failure.engine}: {failure.error}"
        )
    if report.engines_unavailable:
        lines.append(
            f"Unavailable: {', '.join(report.engines_unavailable)}"
        )
    if not report.analyzed:
        lines.append("\nNo engine completed; nothing was analyzed.")
        return "\n".join(lines)

    counts = ", ".join(
        f"{sev}={n}" for sev, n in summary.severity_counts.items() if n
    )
    lines.append(f"Findings: {summary.total_findings} ({counts or 'none'})")
    for vuln in report.prioritized():
        where = ",".join(str(n) for n in vuln.line_numbers)
        refs = " ".join(r for r in (vuln.swc_id, vuln.cwe_id) if r)
        lines.append("")
        lines.append(
            f"[{vuln.severity}] {vuln.title} (line {where})"
            + (f" {refs}" if refs else "")
        )
        lines.append(f"  {vuln.category}, confidence {vuln.confidence}")
        if vuln.recommendation:
            lines.append(f"  Fix: {vuln.recommendation}")
    return "\n".join(lines)


def _run_patterns() -> None:
    """Print the pattern catalogue grouped by category."""
    library = PatternLibrary()
    groups = library.by_category()
    print(f"{len(library)} patterns in {len(groups)} categories")
    for category, patterns in groups.items():
        print(f"\n{category} ({len(patterns)})")
        for p in patterns:
            ref = f" [{p.swc_id}]" if p.swc_id else ""
            print(f"  {p.id}  {p.severity:<8} {p.title}{ref}")
