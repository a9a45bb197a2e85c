#!/usr/bin/env python3
"""
Quick start script to demonstrate the player metrics engine.

This script shows the complete workflow on an in-memory store:
1. Record snapshots from three coaches with different rating habits
2. Inspect contextual baselines and coach scoring profiles
3. Request a calibration hint while scoring
4. Compose readiness and a multi-coach consensus
5. Classify a trend and rank positional suitability
"""

from datetime import datetime, timedelta, timezone

# Rich console for pretty output
from rich import box
from rich.console import Console
from rich.table import Table

from player_metrics.cache import FrozenClock
from player_metrics.config import EngineConfig
from player_metrics.engine import CalibrationEngine
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    AssessmentContext,
    HintContext,
    InsufficientData,
    MetricValue,
    PlayerPosition,
    PositionalSuitability,
    SnapshotDraft,
    TraitScore,
)
from player_metrics.store import InMemorySnapshotStore

console = Console()

CONTEXT = AssessmentContext(center_id="north", position=PlayerPosition.CM, age_group="U16", season="2025-26")

# Each coach's habitual offset from the players' "true" level
COACH_OFFSETS = {"coach-strict": -8.0, "coach-neutral": 0.0, "coach-generous": 10.0}

PLAYER_LEVELS = {"player-ava": 70.0, "player-ben": 58.0, "player-cai": 64.0}


def print_header(title: str):
    """Print a formatted header."""
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    console.print("=" * len(title))


def _draft(player_id: str, coach_id: str, level: float, created_at: datetime) -> SnapshotDraft:
    value = max(0.0, min(100.0, level + COACH_OFFSETS[coach_id]))
    return SnapshotDraft(
        player_id=player_id,
        coach_id=coach_id,
        context=CONTEXT,
        created_at=created_at,
        values=[
            MetricValue(metric_key="passing", value=value),
            MetricValue(metric_key="first_touch", value=max(0.0, value - 4)),
            MetricValue(metric_key="stamina", value=min(100.0, value + 3)),
            MetricValue(metric_key="decisions", value=value),
            MetricValue(metric_key="composure", value=max(0.0, value - 2)),
        ],
        traits=[TraitScore(trait_key="work_rate", value=min(100.0, value + 6))],
        positional=[
            PositionalSuitability(position=PlayerPosition.CM, suitability=value),
            PositionalSuitability(position=PlayerPosition.DM, suitability=max(0.0, value - 10)),
            PositionalSuitability(position=PlayerPosition.AM, suitability=max(0.0, value - 5)),
        ],
    )


def main():
    """Run the complete demonstration workflow."""
    console.print("\n[bold magenta]⚽ Player Metrics Calibration Engine[/bold magenta]")
    console.print("[dim]Demonstration of complete workflow[/dim]\n")

    clock = FrozenClock(datetime(2025, 9, 1, tzinfo=timezone.utc))
    registry = MetricRegistry()
    store = InMemorySnapshotStore(registry, clock=clock)
    engine = CalibrationEngine(store, registry, EngineConfig(min_snapshots_per_category=3), clock=clock)

    # ===== STEP 1: Record Snapshots =====
    print_header("Step 1: Record Snapshots")

    start = clock()
    for week in range(4):
        for player_id, level in PLAYER_LEVELS.items():
            for coach_id in COACH_OFFSETS:
                created_at = start + timedelta(days=7 * week)
                engine.record_snapshot(_draft(player_id, coach_id, level + 2 * week, created_at))
    clock.advance(30 * 24 * 3600)

    console.print(f"✓ Recorded [green]{len(store)}[/green] snapshots from {len(COACH_OFFSETS)} coaches")

    # ===== STEP 2: Baselines & Profiles =====
    print_header("Step 2: Baselines & Coach Profiles")

    baseline = engine.get_contextual_baseline("passing", CONTEXT)
    console.print(
        f"Passing baseline ({CONTEXT.cache_token()}): "
        f"mean {baseline.mean:.1f}, dispersion {baseline.dispersion:.1f}, n={baseline.count}"
    )

    table = Table(title="Technical Bias by Coach", box=box.ROUNDED)
    table.add_column("Coach", style="cyan")
    table.add_column("Bias", justify="right")
    table.add_column("Confidence", justify="right")
    for coach_id in COACH_OFFSETS:
        entry = engine.get_coach_profile(coach_id).calibration_for(registry.category_of("passing"))
        table.add_row(coach_id, f"{entry.bias:+.1f}", f"{entry.confidence:.2f}")
    console.print(table)

    # ===== STEP 3: Calibration Hint =====
    print_header("Step 3: Calibration Hint")

    hint = engine.get_calibration_hints(
        "passing", 92, HintContext(coach_id="coach-strict", context=CONTEXT)
    )
    if isinstance(hint, InsufficientData):
        console.print(f"[yellow]{hint.reason}[/yellow]")
    else:
        console.print(f"Flag: [yellow]{hint.flag.value}[/yellow]")
        console.print(f"  {hint.message}")
        if hint.suggestion:
            console.print(f"  [dim]{hint.suggestion}[/dim]")

    # ===== STEP 4: Readiness & Consensus =====
    print_header("Step 4: Readiness & Consensus")

    latest = engine.latest_snapshot("player-ava")
    readiness = engine.compose_readiness(latest)
    console.print(f"Readiness (latest snapshot): {readiness.overall:.1f} ({readiness.status_band.value})")
    console.print(f"  Strengths: {', '.join(readiness.explanation.top_strengths) or '-'}")
    console.print(f"  Focus: {', '.join(readiness.explanation.recommended_focus) or '-'}")

    record = engine.get_consensus("player-ava", "passing")
    console.print(
        f"Passing consensus: {record.consensus_value:.1f} "
        f"(spread {record.spread:.1f}, {record.agreement.value}, {record.rater_count} coaches)"
    )
    console.print(f"Multi-coach players: {', '.join(engine.get_multi_coach_players())}")

    # ===== STEP 5: Trends & Positions =====
    print_header("Step 5: Trends & Positions")

    trend = engine.classify_trend("player-ava", "passing")
    if not isinstance(trend, InsufficientData):
        console.print(f"Passing trend: {trend.direction.value} ({trend.slope:+.2f} per snapshot)")
    rankings = engine.rank_positional_suitability("player-ava")
    console.print("Best positions: " + ", ".join(f"{r.position.value} ({r.suitability:.0f})" for r in rankings))

    console.print("\n[bold green]✓ Demonstration complete[/bold green]\n")


if __name__ == "__main__":
    main()
