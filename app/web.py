from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.schemas import IngestionStatus
from services.dashboard import ALL_FILTER_VALUE, DashboardRegistry, DashboardSession, build_default_registry
from services.views import series_colour


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

_BADGE_VARIANTS = {
    "excellent": "default",
    "good": "secondary",
    "fair": "outline",
    "poor": "destructive",
    "critical": "destructive",
}


def get_registry() -> DashboardRegistry:
    return build_default_registry()


def get_ui_session(
    window_id: str,
    registry: DashboardRegistry = Depends(get_registry),
) -> DashboardSession:
    return registry.open_window(window_id)


def health_badge_variant(health: str) -> str:
    return _BADGE_VARIANTS.get(health.lower(), "outline")


def _back_to_dashboard(request: Request, window_id: str) -> RedirectResponse:
    return RedirectResponse(
        url=str(request.url_for("ui_dashboard", window_id=window_id)),
        status_code=status.HTTP_303_SEE_OTHER,
    )


router = APIRouter(include_in_schema=False)


@router.get("/ui/{window_id}", name="ui_dashboard", response_class=HTMLResponse)
def ui_dashboard(
    request: Request,
    window_id: str,
    session: DashboardSession = Depends(get_ui_session),
) -> HTMLResponse:
    selected = set(session.selected_ids())
    lines = [
        {
            "asset_id": record.asset_id,
            "name": record.name,
            "colour": series_colour(position),
            "selected": record.asset_id in selected,
        }
        for position, record in enumerate(session.records)
    ]
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "window_id": window_id,
            "preferences": session.preferences,
            "ingestion": session.ingestion_state,
            "show_error": session.ingestion_state.status is IngestionStatus.error,
            "summary": session.summary(),
            "table": session.table(),
            "chart": session.chart(),
            "lines": lines,
            "all_value": ALL_FILTER_VALUE,
            "badge_variant": health_badge_variant,
        },
    )


@router.post("/ui/{window_id}/filters", name="ui_filters")
def ui_filters(
    request: Request,
    window_id: str,
    search: str = Form(""),
    region: str = Form(ALL_FILTER_VALUE),
    health: str = Form(ALL_FILTER_VALUE),
    session: DashboardSession = Depends(get_ui_session),
) -> RedirectResponse:
    session.set_search(search)
    session.set_region_filter(region)
    session.set_health_filter(health)
    return _back_to_dashboard(request, window_id)


@router.post("/ui/{window_id}/selection", name="ui_selection")
def ui_selection(
    request: Request,
    window_id: str,
    checked: bool = Form(...),
    asset_id: Optional[int] = Form(None),
    session: DashboardSession = Depends(get_ui_session),
) -> RedirectResponse:
    if asset_id is None:
        session.select_all(checked)
    else:
        try:
            session.toggle_transformer(asset_id, checked)
        except KeyError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=exc.args[0],
            ) from exc
    return _back_to_dashboard(request, window_id)


@router.post("/ui/{window_id}/data/sample", name="ui_load_sample")
def ui_load_sample(
    request: Request,
    window_id: str,
    session: DashboardSession = Depends(get_ui_session),
) -> RedirectResponse:
    session.load_sample()
    return _back_to_dashboard(request, window_id)


@router.post("/ui/{window_id}/data/upload", name="ui_upload")
def ui_upload(
    request: Request,
    window_id: str,
    file: UploadFile = File(...),
    session: DashboardSession = Depends(get_ui_session),
) -> RedirectResponse:
    session.load_upload(file.filename or "upload.json", file.file.read())
    return _back_to_dashboard(request, window_id)
