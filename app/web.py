from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from services.dashboard import LiveDashboard, build_default_dashboard


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

# Milliseconds between dataset revision checks in the browser.
_POLL_INTERVAL_MS = 2000


def get_dashboard() -> LiveDashboard:
    return build_default_dashboard()


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_dashboard", response_class=HTMLResponse)
async def ui_dashboard(
    request: Request,
    dashboard: LiveDashboard = Depends(get_dashboard),
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "ui/dashboard.html",
        {
            "devices": dashboard.devices,
            "dataset": dashboard.renderer.latest().model_dump(mode="json"),
            "poll_interval_ms": _POLL_INTERVAL_MS,
        },
    )
