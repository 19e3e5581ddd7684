from __future__ import annotations

"""
Typer CLI entry point and orchestration of the analysis pipeline.

- Accepts a .java file or a directory
- Finds .java files (traversal.find_java_files for directories)
- Builds a FileContext for each file
- Runs the enabled leak rules
- Prints findings (Rich tables, or grep-style lines with --plain)

Exit status is 1 when any finding is reported, so the command can gate CI.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer

from leakscan.config import Config, get_default_config, get_enabled_rules
from leakscan.context import create_context
from leakscan.findings.models import Finding
from leakscan.parser import create_parser
from leakscan.reporting.console import format_plain, print_findings
from leakscan.rules.base import Rule
from leakscan.traversal import find_java_files

logger = logging.getLogger(__name__)

app = typer.Typer(help="LeakScan - find Java resources that are never closed or cancelled.")


def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level: {level}")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _collect_java_files(target: Path, include_tests: bool) -> List[Path]:
    """
    Resolve a target path into a list of .java files to analyze.

    - If target is a .java file, return [target]
    - If target is a directory, use traversal.find_java_files()
    - Otherwise, exit with an error.
    """
    if target.is_file():
        if target.suffix.lower() != ".java":
            raise typer.BadParameter(f"Target file must have .java extension, got: {target}")
        return [target]

    if target.is_dir():
        files = find_java_files(target, include_tests=include_tests)
        if not files:
            logger.warning("No .java files found under %s", target)
        return files

    raise typer.BadParameter(f"Target path is neither a file nor a directory: {target}")


def run_rules(files: List[Path], rules: List[Rule], config: Config) -> List[Finding]:
    """Run every rule on every readable file. A rule crashing on one file does not stop the run."""
    parser = create_parser()
    all_findings: List[Finding] = []
    for path in files:
        ctx = create_context(path, parser=parser)
        if ctx is None:
            # File could not be read; error already logged in create_context
            continue
        for rule in rules:
            try:
                all_findings.extend(rule.run(ctx, config))
            except Exception:
                logger.exception("Rule %s failed on %s", rule.id, path)
    return all_findings


@app.command()
def analyze(
    target: Path = typer.Argument(
        ...,
        exists=True,
        readable=True,
        resolve_path=True,
        help="Java file or directory to analyze.",
    ),
    rule: Optional[List[str]] = typer.Option(
        None, "--rule", "-r", help="Only run this rule id (repeatable)."
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Do not treat passing a variable to another call as releasing it.",
    ),
    plain: bool = typer.Option(False, "--plain", help="Print one grep-style line per finding."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show remediation hints."),
    include_tests: bool = typer.Option(
        False, "--include-tests", help="Also scan test source directories."
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """Analyze a single Java file or every .java file under a directory."""
    _configure_logging(log_level)

    config = get_default_config()
    config.argument_escape = not strict
    try:
        rules = list(get_enabled_rules(config, only=rule or None))
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--rule") from exc

    if not rules:
        typer.echo("No rules are enabled in the current configuration.")
        raise typer.Exit(code=2)

    files = _collect_java_files(target, include_tests)
    findings = run_rules(files, rules, config)

    if plain:
        lines = format_plain(findings)
        typer.echo("\n".join(lines) if lines else "No findings.")
    else:
        print_findings(findings, analyzed_files=files, verbose=verbose)

    if findings:
        raise typer.Exit(code=1)


@app.command("list-rules")
def list_rules() -> None:
    """List the registered rules."""
    for r in get_enabled_rules():
        typer.echo(f"{r.id}\t{r.name}")


def main() -> None:
    """Entry point for the `leakscan` script and `python -m leakscan.main`."""
    app()


if __name__ == "__main__":
    main()
