"""
Command-line interface for the player metrics engine.

Provides commands for:
- Snapshot ingestion from JSON files
- Baselines, coach profiles and calibration hints
- Readiness scoring and multi-coach consensus
- Trends, metric history, positional suitability and player reports
"""

import json
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from player_metrics.config import Settings, get_settings
from player_metrics.engine import CalibrationEngine, build_engine
from player_metrics.errors import MetricsEngineError
from player_metrics.logging_config import setup_logging
from player_metrics.report import PlayerReportBuilder
from player_metrics.schemas import (
    AssessmentContext,
    ConsensusBreakdown,
    ContextualBaseline,
    HintContext,
    HintFlag,
    InsufficientData,
    InsufficientRaters,
    MetricCategory,
    PlayerPosition,
    ReadinessIndex,
    SnapshotDraft,
    TrendDirection,
)

# Initialize Typer app and Rich console
app = typer.Typer(
    help="Player Metrics - Coach calibration, readiness and multi-coach consensus"
)
console = Console()

_state = {"database_url": None}


@app.callback()
def main(
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        "-d",
        help="Database connection string (default: PLAYER_METRICS_DATABASE_URL or sqlite:///player_metrics.db)",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
):
    """Player metrics calibration engine."""
    _state["database_url"] = database_url
    setup_logging(log_level)


def _engine() -> CalibrationEngine:
    settings = get_settings()
    if _state["database_url"]:
        settings = Settings(database_url=_state["database_url"])
    return build_engine(settings)


def _load_drafts(path: Path) -> List[SnapshotDraft]:
    """Load one snapshot draft (object) or several (array) from a JSON file."""
    with open(path) as f:
        data = json.load(f)
    items = data if isinstance(data, list) else [data]
    return [SnapshotDraft(**item) for item in items]


def _fail(message: str):
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(1)


def _score_color(score: float) -> str:
    if score >= 75:
        return "green"
    elif score >= 60:
        return "yellow"
    elif score >= 40:
        return "dark_orange"
    return "red"


# ===== DISPLAY HELPER FUNCTIONS =====


def _display_readiness(readiness: ReadinessIndex):
    """
    Display readiness index with color-coded overall score and sub-score table.

    Args:
        readiness: ReadinessIndex from the composer
    """
    color = _score_color(readiness.overall)
    console.print(
        f"\n[bold]Readiness: [{color}]{readiness.overall:.1f}[/{color}] "
        f"({readiness.status_band.value})[/bold]\n"
    )

    table = Table(title="Readiness Breakdown", box=box.ROUNDED)
    table.add_column("Sub-score", style="cyan")
    table.add_column("Value", justify="right", style="yellow")
    table.add_column("Weight", justify="right")

    for name in ("technical", "physical", "mental", "attitude", "tactical_fit"):
        table.add_row(
            name.replace("_", " ").title(),
            f"{getattr(readiness, name):.1f}",
            f"{readiness.weights_used.get(name, 0.0):.2f}",
        )
    console.print(table)

    explanation = readiness.explanation
    if explanation.top_strengths:
        console.print(f"\n[bold]Strengths:[/bold] {', '.join(explanation.top_strengths)}")
    if explanation.recommended_focus:
        console.print(f"[bold]Focus:[/bold] {', '.join(explanation.recommended_focus)}")
    if explanation.rule_triggers:
        console.print(f"[bold]Flags:[/bold] {', '.join(explanation.rule_triggers)}")


def _display_baseline(baseline: ContextualBaseline):
    if not baseline.has_data:
        console.print(f"[yellow]No ratings of {baseline.metric_key} match this context[/yellow]")
        return
    console.print(
        f"[bold]{baseline.metric_key}[/bold] ({baseline.context.cache_token()})\n"
        f"  Mean: [green]{baseline.mean:.1f}[/green]  "
        f"Dispersion: {baseline.dispersion:.2f}  Ratings: {baseline.count}"
    )


# ===== CLI COMMANDS =====


@app.command()
def ingest(
    file: Path = typer.Argument(..., help="JSON file with a snapshot or a list of snapshots", exists=True),
):
    """Record snapshots from a JSON file."""
    engine = _engine()
    try:
        drafts = _load_drafts(file)
    except (ValueError, ValidationError) as e:
        _fail(f"Failed to load snapshots: {e}")

    table = Table(title="Recorded Snapshots", box=box.ROUNDED)
    table.add_column("Snapshot", style="cyan")
    table.add_column("Player")
    table.add_column("Coach")
    table.add_column("Readiness", justify="right")
    table.add_column("Changes", justify="right")

    for draft in drafts:
        try:
            receipt = engine.record_snapshot(draft)
        except MetricsEngineError as e:
            _fail(f"Snapshot for player {draft.player_id} rejected: {e}")
        table.add_row(
            receipt.snapshot.id[:12],
            receipt.snapshot.player_id,
            receipt.snapshot.coach_id,
            f"{receipt.readiness.overall:.1f} ({receipt.readiness.status_band.value})",
            str(len(receipt.changes)),
        )

    console.print(table)
    console.print(f"\n✓ Recorded [green]{len(drafts)}[/green] snapshot(s)")


@app.command()
def baseline(
    metric_key: str = typer.Argument(..., help="Metric key (e.g., passing)"),
    center: Optional[str] = typer.Option(None, "--center", help="Training center"),
    position: Optional[PlayerPosition] = typer.Option(None, "--position", help="Player position"),
    age_group: Optional[str] = typer.Option(None, "--age-group", help="Age group (e.g., U14)"),
    season: Optional[str] = typer.Option(None, "--season", help="Season identifier"),
):
    """Show the peer baseline for a metric within a context."""
    engine = _engine()
    filters = AssessmentContext(center_id=center, position=position, age_group=age_group, season=season)
    try:
        result = engine.get_contextual_baseline(metric_key, filters)
    except MetricsEngineError as e:
        _fail(str(e))
    _display_baseline(result)


@app.command()
def profile(
    coach_id: str = typer.Argument(..., help="Coach identifier"),
    refresh: bool = typer.Option(False, "--refresh", help="Recompute even if cached"),
):
    """Show a coach's per-category bias and confidence."""
    engine = _engine()
    try:
        result = engine.get_coach_profile(coach_id, force_refresh=refresh)
    except MetricsEngineError as e:
        _fail(str(e))

    table = Table(title=f"Scoring Profile: {coach_id}", box=box.ROUNDED)
    table.add_column("Category", style="cyan")
    table.add_column("Bias", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Snapshots", justify="right")
    table.add_column("Status")

    for category in MetricCategory:
        entry = result.calibration_for(category)
        if entry is None:
            continue
        if entry.neutral:
            status = "[dim]neutral (too few snapshots)[/dim]"
        elif entry.low_confidence:
            status = "[yellow]low confidence[/yellow]"
        else:
            status = "[green]calibrated[/green]"
        bias_color = "red" if abs(entry.bias) >= 8 else "white"
        table.add_row(
            category.value.title(),
            f"[{bias_color}]{entry.bias:+.1f}[/{bias_color}]",
            f"{entry.confidence:.2f}",
            str(entry.sample_count),
            status,
        )

    console.print(table)
    console.print(
        f"\n[dim]{result.total_snapshots_observed} snapshots, "
        f"computed {result.last_computed_at:%Y-%m-%d %H:%M} ({result.formula_version})[/dim]"
    )


@app.command()
def hint(
    metric_key: str = typer.Argument(..., help="Metric being rated"),
    value: float = typer.Argument(..., help="Value about to be entered"),
    coach_id: Optional[str] = typer.Option(None, "--coach", help="Coach entering the rating"),
    center: Optional[str] = typer.Option(None, "--center", help="Training center"),
    position: Optional[PlayerPosition] = typer.Option(None, "--position", help="Player position"),
    age_group: Optional[str] = typer.Option(None, "--age-group", help="Age group"),
    season: Optional[str] = typer.Option(None, "--season", help="Season identifier"),
):
    """Compare a rating to peers and to the coach's usual pattern."""
    engine = _engine()
    context = HintContext(
        coach_id=coach_id,
        context=AssessmentContext(center_id=center, position=position, age_group=age_group, season=season),
    )
    try:
        result = engine.get_calibration_hints(metric_key, value, context)
    except MetricsEngineError as e:
        _fail(str(e))

    if isinstance(result, InsufficientData):
        console.print(
            f"[yellow]Not enough ratings in this context ({result.sample_size}/{result.required})[/yellow]"
        )
        return

    border = "green" if result.flag == HintFlag.IN_LINE else "yellow"
    body = result.message
    if result.suggestion:
        body += f"\n\n{result.suggestion}"
    console.print(Panel(body, title=f"{result.flag.value} · percentile {result.percentile:.0f}", border_style=border))


@app.command()
def readiness(
    snapshot_file: Path = typer.Argument(..., help="JSON file with one snapshot", exists=True),
):
    """Score a snapshot file without storing it."""
    engine = _engine()
    try:
        drafts = _load_drafts(snapshot_file)
        result = engine.preview_readiness(drafts[0])
    except (ValueError, ValidationError, MetricsEngineError) as e:
        _fail(f"Failed to score snapshot: {e}")
    _display_readiness(result)


@app.command()
def consensus(
    player_id: str = typer.Argument(..., help="Player identifier"),
    target: str = typer.Argument(..., help="Metric key or category (e.g., passing, TECHNICAL)"),
    show_raters: bool = typer.Option(False, "--show-raters", help="Show per-coach contributions"),
    min_coaches: Optional[int] = typer.Option(None, "--min-coaches", help="Distinct coaches required"),
):
    """Bias-corrected consensus across coaches."""
    engine = _engine()
    try:
        result = engine.get_consensus(player_id, target, anonymize=not show_raters, min_coaches=min_coaches)
    except (ValueError, MetricsEngineError) as e:
        _fail(str(e))

    if isinstance(result, InsufficientRaters):
        console.print(
            f"[yellow]Only {result.rater_count} coach(es) rated {result.target}; "
            f"{result.min_coaches} required[/yellow]"
        )
        return

    color = {"strong": "green", "moderate": "yellow", "weak": "red"}[result.agreement.value]
    console.print(
        f"\n[bold]{result.target}[/bold] consensus: [green]{result.consensus_value:.1f}[/green]  "
        f"spread {result.spread:.1f}  agreement [{color}]{result.agreement.value}[/{color}]  "
        f"({result.rater_count} coaches)"
    )

    if isinstance(result, ConsensusBreakdown):
        table = Table(box=box.ROUNDED)
        table.add_column("Coach", style="cyan")
        table.add_column("Raw", justify="right")
        table.add_column("Corrected", justify="right")
        table.add_column("Weight", justify="right")
        table.add_column("Rated")
        for c in result.contributions:
            table.add_row(
                c.coach_id,
                f"{c.raw_value:.1f}",
                f"{c.corrected_value:.1f}",
                f"{c.weight:.2f}",
                f"{c.rated_at:%Y-%m-%d}",
            )
        console.print(table)


@app.command()
def trend(
    player_id: str = typer.Argument(..., help="Player identifier"),
    metric_key: str = typer.Argument(..., help="Metric key"),
    window: Optional[int] = typer.Option(None, "--window", "-w", help="Trailing snapshots considered"),
):
    """Classify a metric as improving, plateau or declining."""
    engine = _engine()
    try:
        result = engine.classify_trend(player_id, metric_key, window)
    except (ValueError, MetricsEngineError) as e:
        _fail(str(e))

    if isinstance(result, InsufficientData):
        console.print(f"[yellow]Not enough snapshots for a trend ({result.sample_size}/{result.required})[/yellow]")
        return

    color = {
        TrendDirection.IMPROVING: "green",
        TrendDirection.PLATEAU: "yellow",
        TrendDirection.DECLINING: "red",
    }[result.direction]
    console.print(
        f"{metric_key}: [{color}]{result.direction.value}[/{color}] "
        f"({result.slope:+.2f} per snapshot over {result.sample_count} snapshots)"
    )


@app.command()
def timeline(
    player_id: str = typer.Argument(..., help="Player identifier"),
    metric_key: str = typer.Argument(..., help="Metric key"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of ratings"),
):
    """Show the history of one metric, newest first."""
    engine = _engine()
    try:
        points = engine.metric_timeline(player_id, metric_key, limit)
    except (ValueError, MetricsEngineError) as e:
        _fail(str(e))

    if not points:
        console.print(f"[yellow]No ratings of {metric_key} for {player_id}[/yellow]")
        return

    table = Table(title=f"{metric_key}: {player_id}", box=box.ROUNDED)
    table.add_column("Date", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Readiness", justify="right")
    table.add_column("Source")
    table.add_column("Comment")
    for point in points:
        color = _score_color(point.value)
        table.add_row(
            f"{point.recorded_at:%Y-%m-%d}",
            f"[{color}]{point.value:.1f}[/{color}]",
            f"{point.readiness:.1f}" if point.readiness is not None else "-",
            point.source_context.value,
            point.comment or "",
        )
    console.print(table)


@app.command()
def positions(
    player_id: str = typer.Argument(..., help="Player identifier"),
):
    """Rank positional suitability from the latest snapshot."""
    engine = _engine()
    rankings = engine.rank_positional_suitability(player_id)
    if not rankings:
        console.print(f"[yellow]No positional ratings for {player_id}[/yellow]")
        return

    table = Table(title=f"Positional Suitability: {player_id}", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Position", style="cyan")
    table.add_column("Suitability", justify="right")
    for i, ranking in enumerate(rankings, 1):
        color = _score_color(ranking.suitability)
        table.add_row(str(i), ranking.position.value, f"[{color}]{ranking.suitability:.0f}[/{color}]")
    console.print(table)


@app.command()
def metrics(
    category: Optional[MetricCategory] = typer.Option(None, "--category", "-c", help="Only this category"),
    player_visible: bool = typer.Option(False, "--player-visible", help="Hide coach-only metrics"),
):
    """List the metric catalogue."""
    engine = _engine()
    registry = engine.registry
    definitions = registry.visible_to_players() if player_visible else list(registry)
    if category is not None:
        definitions = [d for d in definitions if d.category == category]

    table = Table(title="Metrics", box=box.ROUNDED)
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Coach only", justify="center")
    for d in definitions:
        table.add_row(d.key, d.display_name, d.category.value, "✓" if d.is_coach_only else "")
    console.print(table)
    console.print(f"\n[dim]{len(definitions)} metrics[/dim]")


@app.command()
def report(
    player_id: str = typer.Argument(..., help="Player identifier"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Save the report here"),
    format: str = typer.Option("markdown", "--format", "-f", help="Output format (json or markdown)"),
):
    """Build a player report (printed, or saved with --output-dir)."""
    engine = _engine()
    builder = PlayerReportBuilder(engine, player_id)
    try:
        builder.build()
    except MetricsEngineError as e:
        _fail(str(e))

    if output_dir is None:
        if format == "json":
            console.print_json(json.dumps(builder.export_to_json()))
        else:
            console.print(Markdown(builder.export_to_markdown()))
        return

    try:
        path = builder.save_to_file(output_dir, format)
    except ValueError as e:
        _fail(str(e))
    console.print(f"✓ Report saved: [cyan]{path}[/cyan]")


if __name__ == "__main__":
    app()
