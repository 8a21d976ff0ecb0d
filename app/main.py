from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.dashboard import build_default_dashboard
from services.ingestion import build_default_pipeline


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    pipeline = build_default_pipeline()
    dashboard = build_default_dashboard()
    # The registry must be loaded before any device log is subscribed.
    dashboard.start()
    try:
        yield
    finally:
        dashboard.stop()
        pipeline.shutdown()
        build_default_dashboard.cache_clear()
        build_default_pipeline.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Telemetry Live Plot",
        description="Validates sensor telemetry and keeps live per-device charts in sync.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(web_router)
    return app


app = create_app()
