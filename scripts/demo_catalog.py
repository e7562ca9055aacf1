#!/usr/bin/env python3
"""Walk through the exemplar catalog.

Prints a one-paragraph summary of every vulnerability kind, then a detailed
report for one of them: documentation, the annotated vulnerable code, and the
outcome of its attack scenarios.

Usage:
    python scripts/demo_catalog.py [KIND]

Example:
    python scripts/demo_catalog.py overflow
"""

import sys
from pathlib import Path

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from catalog.registry import ExemplarNotFound, build_registry  # noqa: E402
from harness.engine import VerificationHarness  # noqa: E402

console = Console()

OUTCOME_STYLE = {"Compromised": "bold red", "Rejected": "yellow", "Safe": "green"}


def print_summary(registry):
    console.print("[bold purple]Smart-Contract Vulnerability Exemplars[/bold purple]")
    console.print("=" * 48)
    console.print()
    for i, exemplar in enumerate(registry.all(), 1):
        console.print(f"[bold]{i}. {exemplar.name}[/bold]")
        console.print(f"   {exemplar.description}")
        console.print(f"   [dim]Affected platforms: {', '.join(exemplar.platforms)}[/dim]")
        console.print()


def detailed_report(registry, exemplar):
    console.rule(f"[bold]Detailed Report: {exemplar.name}[/bold]")
    console.print(Panel(exemplar.description, title="Description", border_style="purple"))

    for annotation in exemplar.annotations():
        source = annotation.resolve().read_text(encoding="utf-8")
        console.print(Syntax(
            source,
            "python",
            line_numbers=True,
            line_range=(max(1, annotation.source_line - 3), annotation.sink_line + 3),
            highlight_lines={annotation.source_line, annotation.sink_line},
        ))

    console.print("\n[bold]Detection methods:[/bold]")
    for i, method in enumerate(exemplar.detection_methods, 1):
        console.print(f"  {i}. {method}")
    console.print("\n[bold]Remediation:[/bold]")
    for i, step in enumerate(exemplar.remediation, 1):
        console.print(f"  {i}. {step}")
    console.print()

    report = VerificationHarness(registry).run(kinds=[exemplar.kind])
    table = Table(title="Attack scenarios", box=box.ROUNDED, title_style="bold purple")
    table.add_column("Scenario", style="bold")
    table.add_column("Vulnerable")
    table.add_column("Secure")
    table.add_column("Verified")
    for result in report.results:
        v, s = result.vulnerable_outcome.value, result.secure_outcome.value
        table.add_row(
            result.scenario,
            f"[{OUTCOME_STYLE[v]}]{v}[/{OUTCOME_STYLE[v]}]",
            f"[{OUTCOME_STYLE[s]}]{s}[/{OUTCOME_STYLE[s]}]",
            "[green]yes[/green]" if result.passed else "[red]no[/red]",
        )
    console.print(table)
    for failure in report.failures:
        console.print(f"[red]{failure.error_type}: {failure.message}[/red]")


def main():
    registry = build_registry()
    print_summary(registry)
    kind = sys.argv[1] if len(sys.argv) > 1 else "reentrancy"
    try:
        exemplar = registry.get(kind)
    except ExemplarNotFound as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    detailed_report(registry, exemplar)


if __name__ == "__main__":
    main()
