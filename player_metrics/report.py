"""
Player report generation and export.

Collects what the engine knows about one player (latest readiness, what
changed since the previous snapshot, metric trends, anonymized category
consensus and positional fit) and exports it to JSON and Markdown for
review by staff.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from player_metrics.cache import utc_now
from player_metrics.engine import CalibrationEngine
from player_metrics.schemas import (
    ConsensusRecord,
    MetricCategory,
    MetricChange,
    PositionRanking,
    ReadinessIndex,
    SnapshotOrdering,
    TrendDirection,
    TrendResult,
)
from player_metrics.store import diff_snapshots


class PlayerReport(BaseModel):
    """Point-in-time summary of a player."""

    player_id: str
    generated_at: datetime
    snapshot_count: int = Field(default=0, ge=0)
    latest_snapshot_id: Optional[str] = None
    latest_snapshot_at: Optional[datetime] = None
    readiness: Optional[ReadinessIndex] = None
    changes: List[MetricChange] = Field(default_factory=list)
    trends: List[TrendResult] = Field(default_factory=list)
    consensus: Dict[str, ConsensusRecord] = Field(
        default_factory=dict,
        description="Anonymized consensus per category (only categories with enough raters)"
    )
    positions: List[PositionRanking] = Field(default_factory=list)


_TREND_ICONS = {
    TrendDirection.IMPROVING: "📈",
    TrendDirection.PLATEAU: "➡️",
    TrendDirection.DECLINING: "📉",
}


class PlayerReportBuilder:
    """
    Builds and exports player reports.

    Consensus in a report is always anonymized: reports are shared beyond
    the coaches who authored the ratings.
    """

    def __init__(self, engine: CalibrationEngine, player_id: str):
        """
        Initialize report builder.

        Args:
            engine: Engine to read from
            player_id: Player the report is about
        """
        self.engine = engine
        self.player_id = player_id
        self.report = PlayerReport(player_id=player_id, generated_at=utc_now())

    def build(self) -> PlayerReport:
        """Collect the report from the engine's current state."""
        engine = self.engine
        history = engine.store.get_snapshots_for(
            player_id=self.player_id,
            ordering=SnapshotOrdering.NEWEST_FIRST,
        )
        report = PlayerReport(
            player_id=self.player_id,
            generated_at=engine.clock(),
            snapshot_count=len(history),
        )

        if history:
            latest = history[0]
            previous = history[1] if len(history) > 1 else None
            report.latest_snapshot_id = latest.id
            report.latest_snapshot_at = latest.created_at
            report.readiness = engine.compose_readiness(latest)
            report.changes = diff_snapshots(previous, latest)

            for metric_key, _ in latest.scored_items():
                trend = engine.classify_trend(self.player_id, metric_key)
                if isinstance(trend, TrendResult):
                    report.trends.append(trend)

            report.positions = engine.rank_positional_suitability(self.player_id)

        for category in MetricCategory:
            result = engine.get_consensus(self.player_id, category.value, anonymize=True)
            if isinstance(result, ConsensusRecord):
                report.consensus[category.value] = result

        self.report = report
        return report

    def export_to_json(self) -> dict:
        """
        Export report to JSON-serializable dictionary.

        Returns:
            Dictionary representation of the report
        """
        return self.report.model_dump(mode="json")

    def export_to_markdown(self) -> str:
        """
        Export report to human-readable Markdown format.

        Returns:
            Markdown-formatted player report
        """
        report = self.report
        lines = []

        # Header
        lines.append(f"# Player Report: `{report.player_id}`")
        lines.append("")
        lines.append(f"**Generated:** {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append(f"**Snapshots:** {report.snapshot_count}")
        if report.latest_snapshot_at is not None:
            lines.append(f"**Latest Assessment:** {report.latest_snapshot_at.strftime('%Y-%m-%d')}")
        lines.append("")
        lines.append("---")
        lines.append("")

        # Readiness
        lines.append("## Readiness")
        lines.append("")
        if report.readiness is None:
            lines.append("*No snapshots recorded*")
            lines.append("")
        else:
            readiness = report.readiness
            lines.append(f"**Overall:** {readiness.overall:.1f} → **{readiness.status_band.value}**")
            lines.append("")
            lines.append("| Sub-score | Value | Weight |")
            lines.append("|-----------|-------|--------|")
            for name in ("technical", "physical", "mental", "attitude", "tactical_fit"):
                display = name.replace("_", " ").title()
                weight = readiness.weights_used.get(name, 0.0)
                lines.append(f"| {display} | {getattr(readiness, name):.1f} | {weight:.2f} |")
            lines.append("")

            explanation = readiness.explanation
            if explanation.top_strengths:
                lines.append(f"**Strengths:** {', '.join(explanation.top_strengths)}")
            if explanation.recommended_focus:
                lines.append(f"**Focus Areas:** {', '.join(explanation.recommended_focus)}")
            if explanation.rule_triggers:
                lines.append(f"**Flags:** {', '.join(explanation.rule_triggers)}")
            lines.append("")

        lines.append("---")
        lines.append("")

        # Changes
        lines.append("## Changes Since Previous Snapshot")
        lines.append("")
        if not report.changes:
            lines.append("*No changes*")
        else:
            lines.append("| Metric | Previous | Current | Change |")
            lines.append("|--------|----------|---------|--------|")
            for change in report.changes:
                lines.append(
                    f"| {change.metric_key} | {change.old_value:.0f} | {change.new_value:.0f} | {change.delta:+.0f} |"
                )
        lines.append("")
        lines.append("---")
        lines.append("")

        # Trends
        lines.append("## Trends")
        lines.append("")
        if not report.trends:
            lines.append("*Not enough history for trends*")
        else:
            for trend in report.trends:
                icon = _TREND_ICONS[trend.direction]
                lines.append(
                    f"- {icon} `{trend.metric_key}`: {trend.direction.value} "
                    f"({trend.slope:+.2f} per snapshot over {trend.sample_count})"
                )
        lines.append("")
        lines.append("---")
        lines.append("")

        # Consensus
        lines.append("## Coach Consensus")
        lines.append("")
        if not report.consensus:
            lines.append("*Fewer than the required number of coaches have rated this player*")
        else:
            lines.append("| Category | Consensus | Spread | Agreement | Raters |")
            lines.append("|----------|-----------|--------|-----------|--------|")
            for category, record in report.consensus.items():
                lines.append(
                    f"| {category.title()} | {record.consensus_value:.1f} | {record.spread:.1f} "
                    f"| {record.agreement.value} | {record.rater_count} |"
                )
        lines.append("")

        # Positions
        if report.positions:
            lines.append("---")
            lines.append("")
            lines.append("## Positional Suitability")
            lines.append("")
            for i, ranking in enumerate(report.positions, 1):
                lines.append(f"{i}. **{ranking.position.value}**: {ranking.suitability:.0f}")
            lines.append("")

        return "\n".join(lines)

    def save_to_file(self, output_dir: Path, format: str = "json") -> Path:
        """
        Save report to file in specified format.

        Args:
            output_dir: Directory to save report file
            format: Output format ("json" or "markdown")

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        if format not in ("json", "markdown"):
            raise ValueError(f"Unsupported format: {format}. Use 'json' or 'markdown'")

        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp_str = self.report.generated_at.strftime("%Y%m%d_%H%M%S")
        player_id = self.player_id.replace(" ", "_")

        if format == "json":
            filepath = output_dir / f"report_{player_id}_{timestamp_str}.json"
            with open(filepath, "w") as f:
                json.dump(self.export_to_json(), f, indent=2, default=str)
        else:
            filepath = output_dir / f"report_{player_id}_{timestamp_str}.md"
            with open(filepath, "w") as f:
                f.write(self.export_to_markdown())

        return filepath


def load_report_from_file(filepath: Path) -> PlayerReport:
    """
    Load a player report from JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If JSON is invalid
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Report file not found: {filepath}")

    with open(filepath, "r") as f:
        data = json.load(f)

    try:
        return PlayerReport(**data)
    except Exception as e:
        raise ValueError(f"Invalid report file: {e}")
