"""CLI entry point for the exemplar catalog."""

import logging
import sys

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from catalog.registry import ExemplarNotFound, build_registry
from catalog.scenarios import default_scenario_table
from harness.engine import VerificationHarness
from harness.report import (
    format_annotations_json,
    format_html_report,
    format_json_report,
    format_terminal_report,
)

console = Console()

BANNER = """[bold purple]
Smart-Contract Vulnerability Exemplars
[/bold purple][dim]Vulnerable and secure programs, verified by executable attacks[/dim]
"""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version="0.1.0", prog_name="exemplars")
@click.option("--verbose", "-v", is_flag=True, help="Verbose (debug) logging")
def cli(verbose):
    """exemplars: vulnerable/secure smart-contract exemplars and their verification harness."""
    _configure_logging(verbose)


@cli.command("list")
def list_exemplars():
    """List the registered exemplars."""
    console.print(BANNER)
    registry = build_registry()
    scenarios = default_scenario_table()

    table = Table(title="Vulnerability Exemplars", box=box.ROUNDED, title_style="bold purple")
    table.add_column("Kind", style="bold", no_wrap=True)
    table.add_column("Name")
    table.add_column("Scenarios", justify="right")
    table.add_column("Annotations", justify="right")

    for exemplar in registry.all():
        table.add_row(
            exemplar.kind.value,
            exemplar.name,
            str(len(scenarios.for_kind(exemplar.kind))),
            str(len(exemplar.annotations())),
        )
    console.print(table)


@cli.command()
@click.argument("kind")
def show(kind):
    """Show documentation, annotations and scenarios for one exemplar.

    KIND is a vulnerability kind (e.g. IntegerOverflow, integer-overflow or overflow).
    """
    registry = build_registry()
    try:
        exemplar = registry.get(kind)
    except ExemplarNotFound as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(BANNER)
    console.print(Panel(exemplar.description, title=f"[bold]{exemplar.name}[/bold]", border_style="purple"))
    console.print(f"[bold]Platforms:[/bold] {', '.join(exemplar.platforms)}")
    console.print()

    console.print("[bold]Detection methods:[/bold]")
    for item in exemplar.detection_methods:
        console.print(f"  [dim]>[/dim] {item}")
    console.print()

    console.print("[bold]Remediation:[/bold]")
    for item in exemplar.remediation:
        console.print(f"  [green]+[/green] {item}")
    console.print()

    for annotation in exemplar.annotations():
        label = "" if annotation.ordinal is None else f" {annotation.ordinal}"
        console.print(Panel(
            Text(annotation.snippet()),
            title=f"source/sink{label}: {annotation.file}:{annotation.source_line}-{annotation.sink_line}",
            border_style="dim",
        ))

    table = Table(title="Attack scenarios", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold", no_wrap=True)
    table.add_column("Description")
    for scenario in default_scenario_table().for_kind(exemplar.kind):
        table.add_row(str(scenario.ordinal), scenario.name, scenario.description)
    console.print(table)


@cli.command()
@click.option("--kind", "-k", "kinds", multiple=True, help="Only verify this kind (repeatable)")
@click.option("--format", "output_format", type=click.Choice(["terminal", "json", "html"]),
              default="terminal", help="Output format")
@click.option("--output", "-o", type=click.Path(), help="Output file path")
@click.option("--workers", "-w", type=int, help="Verify exemplars on this many threads")
@click.option("--max-units", type=int, help="Compute units per behaviour")
@click.option("--timeout", type=float, help="Wall-clock seconds per behaviour")
@click.option("--scenarios", "scenario_file", type=click.Path(exists=True, dir_okay=False),
              help="JSON file of scenario setup overrides")
def verify(kinds, output_format, output, workers, max_units, timeout, scenario_file):
    """Run every attack scenario against the vulnerable and secure programs.

    Exits with status 1 when any scenario fails or a harness error occurs.
    """
    registry = build_registry()
    scenarios = default_scenario_table()
    try:
        if scenario_file:
            scenarios = scenarios.load_overrides(scenario_file)
        harness = VerificationHarness(
            registry, scenarios, max_units=max_units, timeout=timeout, workers=workers
        )
        report = harness.run(kinds=list(kinds) or None)
    except (ValueError, ExemplarNotFound) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(2)

    _output_report(report, output_format, output)
    if not report.ok:
        sys.exit(1)


@cli.command()
@click.option("--output", "-o", type=click.Path(), help="Output file path")
def annotations(output):
    """Export source/sink annotations of every exemplar as JSON."""
    result = format_annotations_json(build_registry())
    if output:
        with open(output, "w") as f:
            f.write(result)
        console.print(f"[green]Annotations saved to {output}[/green]")
    else:
        click.echo(result)


def _output_report(report, output_format: str, output_path: str | None):
    """Output the verification report in the specified format."""
    if output_format == "json":
        result = format_json_report(report)
    elif output_format == "html":
        result = format_html_report(report)
    else:
        result = format_terminal_report(report)

    if output_path:
        with open(output_path, "w") as f:
            f.write(result)
        console.print(f"[green]Report saved to {output_path}[/green]")
    else:
        click.echo(result)


def main():
    cli()


if __name__ == "__main__":
    main()
