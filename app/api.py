"""HTTP route definitions for the dashboard service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from app.schemas import (
    ChartResponse,
    ChartSeriesInfo,
    IngestionState,
    PreferencesUpdate,
    SelectionChange,
    SummaryResponse,
    TableRow,
    TableViewResponse,
    WindowStateResponse,
)
from services.dashboard import DashboardRegistry, DashboardSession, build_default_registry
from services.views import series_colour

router = APIRouter()


def get_registry() -> DashboardRegistry:
    return build_default_registry()


def get_session(
    window_id: str,
    registry: DashboardRegistry = Depends(get_registry),
) -> DashboardSession:
    return registry.open_window(window_id)


def _window_state(session: DashboardSession) -> WindowStateResponse:
    return WindowStateResponse(
        window_id=session.window_id,
        ready=session.app_state.ready,
        preferences=session.preferences,
        ingestion=session.ingestion_state,
    )


@router.get(
    "/windows/{window_id}/state",
    response_model=WindowStateResponse,
    summary="Current preferences and data load status for a window.",
)
def get_window_state(session: DashboardSession = Depends(get_session)) -> WindowStateResponse:
    return _window_state(session)


@router.patch(
    "/windows/{window_id}/preferences",
    response_model=WindowStateResponse,
    summary="Merge a partial preferences update and broadcast it.",
)
def update_preferences(
    update: PreferencesUpdate,
    session: DashboardSession = Depends(get_session),
) -> WindowStateResponse:
    session.app_state.update(update)
    return _window_state(session)


@router.post(
    "/windows/{window_id}/selection",
    response_model=WindowStateResponse,
    summary="Show or hide one transformer line, or all of them.",
)
def change_selection(
    change: SelectionChange,
    session: DashboardSession = Depends(get_session),
) -> WindowStateResponse:
    if change.asset_id is None:
        session.select_all(change.checked)
    else:
        try:
            session.toggle_transformer(change.asset_id, change.checked)
        except KeyError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=exc.args[0],
            ) from exc
    return _window_state(session)


@router.post(
    "/windows/{window_id}/data/sample",
    response_model=IngestionState,
    summary="Load the bundled sample data set.",
)
def load_sample(session: DashboardSession = Depends(get_session)) -> IngestionState:
    return session.load_sample()


@router.post(
    "/windows/{window_id}/data/upload",
    response_model=IngestionState,
    summary="Load transformer records from an uploaded JSON file.",
)
def upload_data(
    file: UploadFile = File(..., description="JSON array of transformer records."),
    session: DashboardSession = Depends(get_session),
) -> IngestionState:
    contents = file.file.read()
    return session.load_upload(file.filename or "upload.json", contents)


@router.get(
    "/windows/{window_id}/table",
    response_model=TableViewResponse,
    summary="Filtered transformer rows and filter facets.",
)
def get_table(session: DashboardSession = Depends(get_session)) -> TableViewResponse:
    view = session.table()
    return TableViewResponse(
        rows=[
            TableRow(asset_id=record.asset_id, name=record.name, region=record.region, health=record.health)
            for record in view.rows
        ],
        regions=view.facets.regions,
        health_statuses=view.facets.health_statuses,
        shown=view.shown,
        total=view.total,
    )


@router.get(
    "/windows/{window_id}/chart",
    response_model=ChartResponse,
    summary="Merged voltage series with per-line visibility.",
)
def get_chart(session: DashboardSession = Depends(get_session)) -> ChartResponse:
    series = session.chart()
    selected = set(session.selected_ids())
    records = session.records
    return ChartResponse(
        points=series.points,
        series=[
            ChartSeriesInfo(
                asset_id=record.asset_id,
                name=record.name,
                colour=series_colour(position),
                selected=record.asset_id in selected,
            )
            for position, record in enumerate(records)
        ],
        all_selected=bool(records) and len(selected) == len(records),
        some_selected=0 < len(selected) < len(records),
    )


@router.get(
    "/windows/{window_id}/summary",
    response_model=SummaryResponse,
    summary="Headline statistics for the loaded data set.",
)
def get_summary(session: DashboardSession = Depends(get_session)) -> SummaryResponse:
    stats = session.summary()
    return SummaryResponse(
        total=stats.total,
        critical=stats.critical,
        regions=stats.regions,
        avg_voltage=stats.avg_voltage,
    )


@router.delete(
    "/windows/{window_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close a window and stop listening for preference changes.",
)
def close_window(
    window_id: str,
    registry: DashboardRegistry = Depends(get_registry),
) -> None:
    registry.close_window(window_id)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /ui/main for the dashboard."}
