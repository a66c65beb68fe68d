"""Command line interface with Click and Rich.

This module provides:
- Model validation with correction hints
- Monte Carlo simulation of every scenario, with risk tiers and verdicts
- Sensitivity (tornado) ranking for one scenario
- A demo run on the bundled delivery-business model
"""

import dataclasses
import json
from pathlib import Path
import sys
from typing import Any, NoReturn, Optional, Tuple

import click
import pandas as pd
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from prisma_engine import __version__
from prisma_engine.config import SimulationConfig, get_config
from prisma_engine.data.fixtures import demo_model
from prisma_engine.data.models import DecisionModel
from prisma_engine.data.validation import validate_payload
from prisma_engine.exceptions import PrismaError
from prisma_engine.logging_config import configure_logging
from prisma_engine.session import DecisionSession
from prisma_engine.simulation.analysis.risk import (
    RiskTier,
    classify_all_scenarios,
    format_number,
)
from prisma_engine.simulation.analysis.sensitivity_analyzer import SensitivityAnalyzer
from prisma_engine.simulation.analysis.sensitivity_report import SensitivityReport
from prisma_engine.simulation.engine.simulator import MonteCarloSimulator

console = Console()
err_console = Console(stderr=True)

TIER_STYLES = {
    RiskTier.STRONG: "bold green",
    RiskTier.LOW_RISK: "green",
    RiskTier.MODERATE_RISK: "yellow",
    RiskTier.HIGH_RISK: "red",
}


@click.group()
@click.version_option(version=__version__, prog_name="prisma")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Prisma - decision simulation engine.

    Simulate the futures of a decision model, classify the risk of each
    scenario and find the variables the outcome hinges on.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging_settings = get_config().logging
    configure_logging(
        log_level="DEBUG" if verbose else logging_settings.level,
        log_format=logging_settings.format,
        log_file=logging_settings.log_file,
        enable_colors=logging_settings.enable_colors,
    )


def _simulation_config(iterations: Optional[int], seed: Optional[int]) -> SimulationConfig:
    """Environment configuration with command line overrides applied."""
    config = get_config().simulation
    overrides = {}
    if iterations is not None:
        overrides["iterations"] = iterations
    if seed is not None:
        overrides["random_seed"] = seed
    return dataclasses.replace(config, **overrides) if overrides else config


def _read_payload(model_file: str) -> Any:
    with open(model_file) as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            err_console.print(f"[red]Not valid JSON:[/red] {e}")
            sys.exit(1)


def _load_model(model_file: str) -> DecisionModel:
    """Read and validate a model file, exiting with the report on failure."""
    report = validate_payload(_read_payload(model_file))
    for warning in report.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}")
    if not report.valid:
        err_console.print(f"[red]Invalid model:[/red] {report.describe()}")
        sys.exit(1)
    return report.model


def _fail(ctx: click.Context, error: Exception) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {error}")
    if ctx.obj.get("verbose"):
        err_console.print_exception()
    sys.exit(1)


# ============================================================================
# MODEL COMMANDS
# ============================================================================


@cli.command()
@click.argument("model_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
def validate(model_file: str, output_format: str) -> None:
    """Validate a decision model file.

    \b
    Examples:
        prisma validate model.json
        prisma validate model.json --format json
    """
    report = validate_payload(_read_payload(model_file))

    if output_format == "json":
        data = report.to_dict()
        data["retryHint"] = report.retry_hint()
        click.echo(json.dumps(data, indent=2))
        sys.exit(0 if report.valid else 1)

    table = Table(title="Model Validation", show_header=True)
    table.add_column("Check", style="cyan", width=22)
    table.add_column("Status")
    table.add_column("Details", style="yellow", overflow="fold")

    def _row(name, problems):
        if problems:
            table.add_row(name, "[red]✗ Failed[/red]", ", ".join(problems))
        else:
            table.add_row(name, "[green]✓ OK[/green]", "")

    _row("Required fields", report.missing_fields)
    _row("Schema and formulas", report.errors)
    _row("Formula identifiers", report.unknown_identifiers)
    console.print(table)

    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    hint = report.retry_hint()
    if hint:
        console.print(Panel(hint, title="Correction", border_style="yellow"))

    if not report.valid:
        sys.exit(1)
    console.print("[bold green]✓[/bold green] Model is valid")


@cli.command()
@click.argument("model_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--iterations", "-n", type=click.IntRange(min=1), help="Iterations per scenario")
@click.option("--seed", type=int, help="Random seed for reproducible runs")
@click.option(
    "--scenario",
    "-s",
    "scenario_ids",
    multiple=True,
    help="Scenario to simulate (repeatable, defaults to all)",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write per-iteration outcomes to a CSV file",
)
@click.pass_context
def simulate(
    ctx: click.Context,
    model_file: str,
    iterations: Optional[int],
    seed: Optional[int],
    scenario_ids: Tuple[str, ...],
    output_format: str,
    output: Optional[str],
) -> None:
    """Run the Monte Carlo simulation for a decision model.

    \b
    Examples:
        prisma simulate model.json
        prisma simulate model.json --iterations 5000 --seed 42
        prisma simulate model.json -s hire_two_drivers --format json
        prisma simulate model.json --output outcomes.csv
    """
    model = _load_model(model_file)
    config = _simulation_config(iterations, seed)

    try:
        simulator = MonteCarloSimulator(config=config)
        selected = list(scenario_ids) or [scenario.id for scenario in model.scenarios]

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
            transient=True,
        ) as progress:
            task = progress.add_task("Simulating scenarios...", total=None)
            results = {sid: simulator.run(model, sid) for sid in selected}
            progress.update(task, description="Stress testing...")
            assessments = classify_all_scenarios(results, model, simulator)
            progress.update(task, completed=True)
    except PrismaError as e:
        _fail(ctx, e)

    if output:
        frame = pd.DataFrame({sid: result.outcomes for sid, result in results.items()})
        frame.to_csv(output, index_label="iteration")

    if output_format == "json":
        payload = {
            sid: {
                **result.to_dict(include_outcomes=False),
                "assessment": assessments[sid].to_dict(),
            }
            for sid, result in results.items()
        }
        click.echo(json.dumps(payload, indent=2))
        return

    unit = model.outcome.unit
    table = Table(
        title=f"{model.outcome.label or model.outcome.id} vs. baseline"
        + (f" ({unit})" if unit else ""),
        show_header=True,
    )
    table.add_column("Scenario", style="cyan")
    table.add_column("Median", justify="right")
    table.add_column("P10", justify="right")
    table.add_column("P90", justify="right")
    table.add_column("% Positive", justify="right")
    table.add_column("Risk")

    for sid, result in results.items():
        assessment = assessments[sid]
        style = TIER_STYLES[assessment.classification]
        table.add_row(
            model.get_scenario(sid).display_label,
            format_number(result.summary.median),
            format_number(result.summary.p10),
            format_number(result.summary.p90),
            f"{result.summary.percent_positive:.0f}%",
            f"[{style}]{assessment.classification.value}[/{style}]",
        )
    console.print(table)

    for sid, result in results.items():
        if result.formula_rejected:
            console.print(f"[red]Outcome formula rejected for {sid}[/red]")
        elif result.failed_iterations:
            console.print(
                f"[yellow]{sid}: {result.failed_iterations} iterations failed to evaluate[/yellow]"
            )
        assessment = assessments[sid]
        console.print(f"[dim]{sid}:[/dim] {assessment.reasoning}")

    if output:
        console.print(f"[bold green]✓[/bold green] Outcomes written to {output}")


@cli.command()
@click.argument("model_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--scenario", "-s", "scenario_id", required=True, help="Scenario to analyze")
@click.option("--iterations", "-n", type=click.IntRange(min=1), help="Iterations per run")
@click.option("--seed", type=int, help="Random seed for reproducible runs")
@click.option("--top-n", type=int, default=10, help="Number of variables to show")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def sensitivity(
    ctx: click.Context,
    model_file: str,
    scenario_id: str,
    iterations: Optional[int],
    seed: Optional[int],
    top_n: int,
    output_format: str,
) -> None:
    """Rank variables by how much they swing the outcome.

    \b
    Examples:
        prisma sensitivity model.json --scenario hire_two_drivers
        prisma sensitivity model.json -s raise_prices --format json
    """
    model = _load_model(model_file)
    config = _simulation_config(None, seed)

    try:
        analyzer = SensitivityAnalyzer(
            MonteCarloSimulator(config=config),
            iterations=iterations,
            random_state=config.random_seed,
        )
        with err_console.status("Ranking variables..."):
            ranking = analyzer.rank(model, scenario_id)
    except PrismaError as e:
        _fail(ctx, e)

    report = SensitivityReport(
        ranking,
        outcome_unit=model.outcome.unit,
        outcome_label=model.outcome.label or model.outcome.id,
    )

    if output_format == "json":
        click.echo(report.export_json())
        return

    table = Table(title=f"Sensitivity: {model.get_scenario(scenario_id).display_label}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Variable", style="cyan")
    table.add_column("At Min", justify="right")
    table.add_column("At Max", justify="right")
    table.add_column("Swing", justify="right", style="bold")
    table.add_column("Share", justify="right")

    for row in report.get_table_data()[:top_n]:
        table.add_row(
            str(row["rank"]),
            row["variable_label"],
            format_number(row["impact_low"]),
            format_number(row["impact_high"]),
            format_number(row["total_swing"]),
            f"{row['share_of_swing']:.0%}",
        )
    console.print(table)

    console.print("\n[bold]Key findings[/bold]")
    for finding in report.get_key_findings():
        console.print(f"  • {finding}")


@cli.command()
@click.option("--iterations", "-n", type=click.IntRange(min=1), help="Iterations per scenario")
@click.option("--seed", type=int, default=42, show_default=True, help="Random seed")
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False),
    help="Write the demo model JSON to this path and exit",
)
@click.pass_context
def demo(
    ctx: click.Context,
    iterations: Optional[int],
    seed: int,
    export_path: Optional[str],
) -> None:
    """Run the full pipeline on the bundled delivery-business model.

    \b
    Examples:
        prisma demo
        prisma demo --iterations 500 --seed 7
        prisma demo --export delivery.json
    """
    model = demo_model()

    if export_path:
        Path(export_path).write_text(json.dumps(model.to_payload(), indent=2))
        console.print(f"[bold green]✓[/bold green] Demo model written to {export_path}")
        return

    session = DecisionSession(model, config=_simulation_config(iterations, seed), random_state=seed)
    try:
        with err_console.status("Simulating futures..."):
            snapshot = session.run()
    except PrismaError as e:
        _fail(ctx, e)

    console.print(
        Panel(
            f"[bold]Outcome:[/bold] {model.outcome.label} ({model.outcome.unit})\n"
            f"[bold]Scenarios:[/bold] {len(model.scenarios)}\n"
            f"[bold]Variables:[/bold] {len(model.variables)}",
            title="Delivery business demo",
            border_style="blue",
        )
    )

    tone_styles = {"positive": "green", "caution": "yellow", "negative": "red"}
    for scenario in model.scenarios:
        result_verdict = snapshot.verdicts[scenario.id]
        style = tone_styles[result_verdict.tone]
        marker = " ★" if scenario.id == snapshot.best_scenario_id else ""
        console.print(
            Panel(
                f"{result_verdict.summary_text}\n{result_verdict.risk_text}",
                title=f"[{style}]{result_verdict.headline}{marker}[/{style}] "
                f"(score {result_verdict.score})",
                border_style=style,
            )
        )

    if snapshot.sensitivity:
        console.print("\n[bold]What matters most[/bold]")
        for result in snapshot.sensitivity[:3]:
            console.print(
                f"  • {result.variable_label}: swing {format_number(result.total_swing)}"
            )

    best_timeline = snapshot.timelines.get(snapshot.best_scenario_id or "")
    if best_timeline:
        table = Table(title="Outcome over time (best scenario)")
        table.add_column("Month", justify="right")
        table.add_column("Median", justify="right")
        table.add_column("P25-P75", justify="right")
        for point in best_timeline:
            table.add_row(
                str(point.month),
                format_number(point.outcome_median),
                f"{format_number(point.outcome_p25)} .. {format_number(point.outcome_p75)}",
            )
        console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
