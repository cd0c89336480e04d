"""Rich renderables for the command surface.

- Per-module status table with phase progress
- Run summary with failure details
- Validation reports and preflight results

Usage:
    console = Console()
    console.print(status_table(registry, store.all_records()))
    console.print(summary_panel(summary))
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from repomigrate.graph.registry import ModuleRegistry
from repomigrate.integrations.preflight import CheckResult
from repomigrate.runtime.lifecycle import ModuleState
from repomigrate.runtime.orchestrator import Action, RunSummary
from repomigrate.runtime.records import ModuleRecord, ValidationReport

# State icons and colors
_STATE_STYLES: Dict[ModuleState, Tuple[str, str]] = {
    ModuleState.PENDING: ("◌", "dim"),
    ModuleState.EXTRACTING: ("⟳", "cyan"),
    ModuleState.EXTRACTED: ("●", "blue"),
    ModuleState.VALIDATING: ("⟳", "cyan"),
    ModuleState.VALIDATED: ("●", "magenta"),
    ModuleState.PUBLISHING: ("⟳", "cyan"),
    ModuleState.PUBLISHED: ("✓", "green"),
    ModuleState.FAILED: ("✗", "red"),
}

_ACTION_STYLES: Dict[str, str] = {
    Action.PUBLISHED: "green",
    Action.ALREADY_PUBLISHED: "dim green",
    Action.FAILED: "bold red",
    Action.REJECTED: "red",
    Action.REFUSED: "yellow",
    Action.BLOCKED: "yellow",
    Action.SKIPPED: "dim",
    Action.CANCELLED: "bold yellow",
    Action.PLANNED: "cyan",
}


def state_text(state: ModuleState) -> Text:
    icon, color = _STATE_STYLES[state]
    return Text(f"{icon} {state}", style=color)


def phase_progress(
    registry: ModuleRegistry, records: Dict[str, ModuleRecord]
) -> Dict[int, Tuple[int, int]]:
    """Return ``{phase: (published, total)}``."""
    progress: Dict[int, Tuple[int, int]] = {}
    for phase in registry.phases():
        modules = registry.list_modules(phase)
        published = sum(
            1
            for module in modules
            if module.name in records and records[module.name].state is ModuleState.PUBLISHED
        )
        progress[phase] = (published, len(modules))
    return progress


def status_table(
    registry: ModuleRegistry,
    records: Dict[str, ModuleRecord],
    phase: Optional[int] = None,
    accepted: Optional[Set[int]] = None,
) -> Group:
    """Build the ``status`` view: one row per module, progress per phase.

    Args:
        registry: Module registry.
        records: Persisted records keyed by name (missing means Pending).
        phase: Restrict the table to one phase.
        accepted: Phases the operator accepted as partial.
    """
    accepted = accepted or set()
    table = Table(title="Module status", header_style="bold", expand=False)
    table.add_column("Phase", justify="right")
    table.add_column("Module", style="bold")
    table.add_column("Repository")
    table.add_column("State")
    table.add_column("Updated", style="dim")
    table.add_column("Last error", overflow="fold")

    for module in registry.list_modules(phase):
        record = records.get(module.name) or ModuleRecord(name=module.name)
        error = ""
        if record.is_failed:
            error = f"[{record.failed_stage}] {record.last_error or ''}"
        elif record.validation is not None and not record.validation.passed:
            error = f"rejected: {len(record.validation.failures())} rule(s) failed"
        table.add_row(
            str(module.phase),
            module.name,
            module.slug,
            state_text(record.state),
            record.updated_at or "",
            Text(error, style="red"),
        )

    lines = Text()
    total_published = 0
    total = 0
    for number, (published, count) in phase_progress(registry, records).items():
        if phase is not None and number != phase:
            continue
        total_published += published
        total += count
        percent = 100 * published // count if count else 0
        lines.append(f"Phase {number}: ", style="bold")
        lines.append(f"{published}/{count} published ({percent}%)",
                     style="green" if published == count else "yellow")
        if number in accepted:
            lines.append(" [accepted as partial]", style="dim")
        lines.append("\n")
    overall = 100 * total_published // total if total else 0
    lines.append(f"Overall: {total_published}/{total} ({overall}%)", style="bold")
    return Group(table, lines)


def report_table(report: ValidationReport) -> Table:
    """Every rule of a validation report with its outcome."""
    title = f"Validation of {report.module}: " + ("PASSED" if report.passed else "REJECTED")
    table = Table(title=title, header_style="bold",
                  title_style="green" if report.passed else "red")
    table.add_column("Rule")
    table.add_column("Result")
    table.add_column("Detail", overflow="fold")
    for result in report.results:
        table.add_row(
            result.rule,
            Text("pass", style="green") if result.passed else Text("FAIL", style="bold red"),
            result.detail,
        )
    return table


def summary_panel(summary: RunSummary) -> Panel:
    """Final run summary, followed by the report of every rejected module."""
    table = Table(header_style="bold", expand=False)
    table.add_column("Phase", justify="right")
    table.add_column("Module", style="bold")
    table.add_column("State")
    table.add_column("Outcome")
    table.add_column("Reason", overflow="fold")
    for outcome in summary.outcomes:
        reason = outcome.reason or ""
        if outcome.failed_stage is not None:
            reason = f"[{outcome.failed_stage}] {reason}"
        table.add_row(
            str(outcome.phase),
            outcome.name,
            state_text(outcome.state),
            Text(outcome.action, style=_ACTION_STYLES.get(outcome.action, "")),
            reason,
        )

    parts: List = [table]
    for outcome in summary.outcomes:
        if outcome.validation is not None and not outcome.validation.passed:
            if outcome.action in (Action.REJECTED, Action.FAILED):
                parts.append(report_table(outcome.validation))

    footer = Text()
    footer.append(f"Mode: {summary.mode.value}", style="dim")
    footer.append(" │ ", style="dim")
    footer.append(f"Phases: {', '.join(str(p) for p in summary.phases)}", style="dim")
    footer.append(" │ ", style="dim")
    footer.append(f"{summary.duration:.1f}s", style="dim")
    if summary.halted_phase is not None:
        footer.append(" │ ", style="dim")
        footer.append(f"halted in phase {summary.halted_phase}", style="red")
    if summary.cancelled:
        footer.append(" │ ", style="dim")
        footer.append("cancelled", style="bold yellow")
    parts.append(footer)

    ok = summary.ok
    return Panel(
        Group(*parts),
        title=Text("Migration run", style="bold green" if ok else "bold red"),
        border_style="green" if ok else "red",
        padding=(0, 1),
    )


def preflight_table(results: Iterable[CheckResult]) -> Table:
    table = Table(title="Prerequisites", header_style="bold")
    table.add_column("Check")
    table.add_column("Result")
    table.add_column("Detail", overflow="fold")
    for result in results:
        if result.ok:
            verdict = Text("ok", style="green")
        elif result.required:
            verdict = Text("MISSING", style="bold red")
        else:
            verdict = Text("warning", style="yellow")
        table.add_row(result.name, verdict, result.detail)
    return table


__all__ = [
    "phase_progress",
    "preflight_table",
    "report_table",
    "state_text",
    "status_table",
    "summary_panel",
]
