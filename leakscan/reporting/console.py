# Terminal output for findings: a Rich view grouped by file, and a plain
# grep-style view for CI logs and editors.

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from leakscan.findings.models import Finding

# Remediation hints per rule (shown with --verbose)
RULE_REMEDIATIONS: dict[str, str] = {
    "close-resources": (
        "Declare the resource in a try-with-resources statement: "
        "try (var in = new FileInputStream(path)) { ... }. "
        "For fields, close them from the owner's own close() method."
    ),
    "cancel-timers": (
        "Call cancel() once the timer or subscription is no longer needed, "
        "for example from a shutdown hook or the owner's close() method."
    ),
}

SEVERITY_STYLE = {
    "error": "bold red",
    "warning": "bold yellow",
    "info": "bold blue",
}

DEFAULT_SEVERITY_STYLE = "bold white"


def _severity_style(severity: str) -> str:
    return SEVERITY_STYLE.get(severity.lower(), DEFAULT_SEVERITY_STYLE)


def _display_path(path: str | Path) -> str:
    """Path relative to the working directory when possible, with forward slashes."""
    p = Path(path)
    try:
        p = p.resolve().relative_to(Path.cwd())
    except ValueError:
        pass
    return p.as_posix()


def _group_by_file(findings: Sequence[Finding]) -> dict[str, list[Finding]]:
    by_file: dict[str, list[Finding]] = {}
    for f in findings:
        by_file.setdefault(str(f.location.path), []).append(f)
    for file_findings in by_file.values():
        file_findings.sort(key=lambda x: (x.location.line, x.location.column))
    return by_file


def format_plain(findings: Sequence[Finding]) -> list[str]:
    """One `path:line:col: SEVERITY [rule] message` line per finding, sorted by location."""
    lines: list[str] = []
    for _, file_findings in sorted(_group_by_file(findings).items()):
        lines.extend(f.format_line() for f in file_findings)
    return lines


def print_findings(
    findings: Sequence[Finding],
    analyzed_files: Optional[Sequence[Path]] = None,
    verbose: bool = False,
    console: Optional[Console] = None,
) -> None:
    """
    Print findings grouped by file, colored by severity, with the flagged
    declaration as a snippet. If verbose, adds remediation hints; if
    analyzed_files is given, ends with a per-file summary table.
    """
    console = console or Console()

    if not findings:
        if analyzed_files:
            _print_file_summary_table([], analyzed_files, console)
        console.print(
            Panel(
                "[green]No leaked resources found.[/green]",
                title="LeakScan",
                border_style="green",
                box=box.ROUNDED,
            )
        )
        return

    for path, file_findings in sorted(_group_by_file(findings).items()):
        console.print()
        console.print(Panel(
            f"[bold cyan]{_display_path(path)}[/bold cyan]",
            box=box.SIMPLE_HEAD,
            border_style="blue",
            padding=(0, 1),
        ))

        table = Table(
            show_header=True,
            header_style="bold magenta",
            box=box.SIMPLE,
            padding=(0, 1),
            expand=False,
        )
        table.add_column("Line", justify="right", style="dim", width=5)
        table.add_column("Col", justify="right", style="dim", width=4)
        table.add_column("Severity", width=10)
        table.add_column("Rule", width=18)
        table.add_column("Message", style="white")

        for f in file_findings:
            loc = f.location
            table.add_row(
                str(loc.line),
                str(loc.column),
                Text(f.severity.upper(), style=_severity_style(f.severity)),
                Text(f"[{f.rule_id}]", style="dim"),
                f.message,
            )
        console.print(table)

        for f in file_findings:
            if f.location.snippet:
                console.print(f"  [dim]|--[/dim] {escape(f.location.snippet.strip())}", highlight=False)

        if verbose:
            seen_rules: set[str] = set()
            for f in file_findings:
                if f.rule_id in seen_rules:
                    continue
                seen_rules.add(f.rule_id)
                hint = RULE_REMEDIATIONS.get(f.rule_id)
                if hint:
                    label = f"[{f.rule_id}]"
                    console.print(f"  [dim]\\[fix][/dim] {escape(label)} {escape(hint)}", highlight=False)

    if analyzed_files:
        _print_file_summary_table(findings, analyzed_files, console)

    _print_summary(findings, console)


def _print_file_summary_table(
    findings: Sequence[Finding],
    analyzed_files: Sequence[Path],
    console: Console,
) -> None:
    """Table of files with and without leaks."""
    by_path: dict[str, int] = {}
    for f in findings:
        key = str(f.location.path)
        by_path[key] = by_path.get(key, 0) + 1

    table = Table(
        title="Files Summary",
        show_header=True,
        header_style="bold cyan",
        box=box.ROUNDED,
        padding=(0, 1),
    )
    table.add_column("File", style="white")
    table.add_column("Status", width=8)
    table.add_column("Findings", justify="right", width=8)

    for p in sorted(analyzed_files, key=lambda p: (str(p) not in by_path, str(p))):
        count = by_path.get(str(p), 0)
        status = Text("LEAKS", style="bold red") if count else Text("OK", style="bold green")
        table.add_row(_display_path(p), status, str(count))

    console.print()
    console.print(Panel(table, border_style="cyan", box=box.ROUNDED))


def _print_summary(findings: Sequence[Finding], console: Console) -> None:
    by_severity: dict[str, int] = {}
    for f in findings:
        s = f.severity.lower()
        by_severity[s] = by_severity.get(s, 0) + 1

    total = len(findings)
    parts = [f"[bold]{total} finding{'s' if total != 1 else ''}[/bold]"]
    for sev, count in sorted(by_severity.items()):
        parts.append(f"[{_severity_style(sev)}]{count} {sev}[/]")

    console.print()
    console.print(
        Panel(
            " | ".join(parts),
            title="Summary",
            border_style="yellow",
            box=box.ROUNDED,
        )
    )
