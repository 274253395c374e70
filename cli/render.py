from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

import typer

from app.schemas import IngestionState, IngestionStatus, Preferences
from models.records import TransformerRecord
from services.views import ChartSeries, SummaryStats, TableView

_MISSING = "-"


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _columns(rows: Sequence[Sequence[str]]) -> list[int]:
    return [max(len(row[index]) for row in rows) for index in range(len(rows[0]))]


def echo_grid(header: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    widths = _columns([header, *rows])
    typer.echo("  ".join(cell.ljust(width) for cell, width in zip(header, widths)).rstrip())
    typer.echo("  ".join("-" * width for width in widths))
    for row in rows:
        typer.echo("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())


def render_ingestion(state: IngestionState) -> None:
    if state.status is IngestionStatus.error:
        typer.secho(state.message, fg=typer.colors.RED, err=True)
    elif state.status is IngestionStatus.success:
        typer.secho(state.message, fg=typer.colors.GREEN)


def render_preferences(preferences: Preferences) -> None:
    echo_heading("Preferences")
    echo_key_values(
        [
            ("dataSource", preferences.data_source.value),
            ("searchTerm", preferences.search_term),
            ("regionFilter", preferences.region_filter or "all"),
            ("healthFilter", preferences.health_filter or "all"),
            (
                "selectedTransformers",
                ", ".join(str(value) for value in preferences.selected_transformers) or "none",
            ),
        ]
    )


def render_summary(stats: SummaryStats) -> None:
    echo_heading("Summary")
    echo_key_values(
        [
            ("Total Assets", stats.total),
            ("Critical Status", stats.critical),
            ("Regions", stats.regions),
            ("Avg Voltage", f"{stats.avg_voltage:,}"),
        ]
    )


def render_table(view: TableView) -> None:
    echo_heading("Transformer Assets")
    if view.rows:
        echo_grid(
            ["ID", "Name", "Region", "Health Status"],
            [[str(record.asset_id), record.name, record.region, record.health] for record in view.rows],
        )
    else:
        typer.echo("No transformers found matching your criteria")
    typer.echo(f"Showing {view.shown} of {view.total} transformers")
    typer.echo(f"Regions: {', '.join(view.facets.regions) or 'none'}")
    typer.echo(f"Health statuses: {', '.join(view.facets.health_statuses) or 'none'}")


def _cell(value: Optional[Any]) -> str:
    return _MISSING if value is None else str(value)


def render_chart(series: ChartSeries, visible: Sequence[TransformerRecord]) -> None:
    echo_heading("Voltage Readings")
    names = [record.name for record in visible]
    if not names:
        typer.echo("No transformers selected.")
        return
    if not series.points:
        typer.echo("No readings available.")
        return
    echo_grid(
        ["Timestamp", *names],
        [[str(point["fullTimestamp"]), *(_cell(point.get(name)) for name in names)] for point in series.points],
    )
