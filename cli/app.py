from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer

from app.schemas import DataSource, IngestionStatus, Preferences
from cli.config import CLIConfig, load_config
from cli.render import (
    render_chart,
    render_ingestion,
    render_preferences,
    render_summary,
    render_table,
)
from datastore.preferences_store import LocalStoragePreferencesStore
from services.app_state import AppState
from services.dashboard import DashboardSession
from services.ingestion import IngestionService
from services.state_channel import StateChannel
from storage.local_storage import LocalStorage


@dataclass
class CLIState:
    config: CLIConfig
    session: DashboardSession


app = typer.Typer(
    help="Inspect transformer asset data and the saved dashboard preferences.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
prefs_app = typer.Typer(help="Show or change the saved dashboard preferences.")
app.add_typer(prefs_app, name="prefs")

_DATA_OPTION_HELP = "JSON file to load as uploaded data (defaults to the bundled sample)."


def build_session(config: CLIConfig) -> DashboardSession:
    storage = LocalStorage(
        origin="local",
        root_path=Path(config.storage_path) if config.storage_path else None,
    )
    store = LocalStoragePreferencesStore(
        storage=storage,
        channel=StateChannel(),
        window_id=config.window_id,
        key=config.state_key,
    )
    return DashboardSession(
        window_id=config.window_id,
        app_state=AppState(store, window_id=config.window_id),
        ingestion=IngestionService(Path(config.sample_path)),
    )


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.find_root().obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _load_data(session: DashboardSession, data: Optional[Path]) -> None:
    if data is None:
        outcome = session.load_sample()
    else:
        outcome = session.load_upload(data.name, data.read_bytes())
    if outcome.status is IngestionStatus.error:
        render_ingestion(outcome)
        raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    storage_path: Optional[str] = typer.Option(
        None,
        "--storage-path",
        "-s",
        help="Directory holding saved preferences (defaults to TRANSFORMER_STORAGE_PATH or ./tmp/local_storage).",
    ),
    sample_path: Optional[str] = typer.Option(
        None,
        "--sample-path",
        help="Override the bundled sample data file.",
    ),
    window_id: Optional[str] = typer.Option(
        None,
        "--window-id",
        help="Name this terminal session uses when writing preferences.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(storage_path=storage_path, sample_path=sample_path, window_id=window_id)
    session = build_session(config)
    session.start(autoload_sample=False)
    ctx.obj = CLIState(config=config, session=session)
    ctx.call_on_close(session.close)


@app.command("summary")
def summary_command(
    ctx: typer.Context,
    data: Optional[Path] = typer.Option(None, "--data", "-d", exists=True, dir_okay=False, help=_DATA_OPTION_HELP),
) -> None:
    """Show total, critical, region and average voltage figures."""
    state = _get_state(ctx)
    _load_data(state.session, data)
    render_summary(state.session.summary())


@app.command("table")
def table_command(
    ctx: typer.Context,
    data: Optional[Path] = typer.Option(None, "--data", "-d", exists=True, dir_okay=False, help=_DATA_OPTION_HELP),
    search: Optional[str] = typer.Option(None, "--search", help="Save a new search term before listing."),
    region: Optional[str] = typer.Option(None, "--region", help="Save a region filter ('all' clears it)."),
    health: Optional[str] = typer.Option(None, "--health", help="Save a health filter ('all' clears it)."),
) -> None:
    """List transformers matching the saved search and filters."""
    state = _get_state(ctx)
    session = state.session
    _load_data(session, data)
    if search is not None:
        session.set_search(search)
    if region is not None:
        session.set_region_filter(region)
    if health is not None:
        session.set_health_filter(health)
    render_table(session.table())


@app.command("chart")
def chart_command(
    ctx: typer.Context,
    data: Optional[Path] = typer.Option(None, "--data", "-d", exists=True, dir_okay=False, help=_DATA_OPTION_HELP),
    hide: List[int] = typer.Option([], "--hide", help="Asset id to leave out of the chart; repeatable."),
) -> None:
    """Print the merged voltage series for the selected transformers."""
    state = _get_state(ctx)
    session = state.session
    _load_data(session, data)
    for asset_id in hide:
        try:
            session.toggle_transformer(asset_id, checked=False)
        except KeyError as exc:
            raise typer.BadParameter(exc.args[0], param_hint="--hide") from exc
    render_chart(session.chart(), session.eligible())


@prefs_app.command("show")
def prefs_show_command(ctx: typer.Context) -> None:
    """Print the saved preferences."""
    render_preferences(_get_state(ctx).session.preferences)


@prefs_app.command("set")
def prefs_set_command(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search", help="Search term."),
    region: Optional[str] = typer.Option(None, "--region", help="Region filter ('all' clears it)."),
    health: Optional[str] = typer.Option(None, "--health", help="Health filter ('all' clears it)."),
    source: Optional[DataSource] = typer.Option(None, "--source", help="Preferred data source."),
) -> None:
    """Change saved preferences; omitted options keep their value."""
    session = _get_state(ctx).session
    if search is not None:
        session.set_search(search)
    if region is not None:
        session.set_region_filter(region)
    if health is not None:
        session.set_health_filter(health)
    if source is not None:
        session.app_state.update({"data_source": source})
    render_preferences(session.preferences)


@prefs_app.command("reset")
def prefs_reset_command(ctx: typer.Context) -> None:
    """Restore default preferences."""
    session = _get_state(ctx).session
    session.app_state.update(Preferences().model_dump())
    render_preferences(session.preferences)
