"""HTTP route definitions for the service."""

from __future__ import annotations

import asyncio
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import (
    DeviceSummary,
    IngestResponse,
    PubSubPushEnvelope,
    RenderDataset,
    TelemetryEvent,
)
from services.dashboard import LiveDashboard, build_default_dashboard
from services.envelope import to_telemetry_event
from services.ingestion import IngestionPipeline, StoreWriteError, build_default_pipeline

router = APIRouter()


def get_pipeline() -> IngestionPipeline:
    return build_default_pipeline()


def get_dashboard() -> LiveDashboard:
    return build_default_dashboard()


async def _ingest(pipeline: IngestionPipeline, event: TelemetryEvent) -> IngestResponse:
    # The store write blocks, so it runs on the pipeline executor.
    future = pipeline.submit(event.device_id, event.timestamp, event.payload)
    try:
        outcome = await asyncio.wrap_future(future)
    except StoreWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    return IngestResponse(
        accepted=outcome.accepted,
        reason=outcome.reason.value if outcome.reason is not None else None,
        key=outcome.key,
    )


@router.post(
    "/telemetry",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=IngestResponse,
    summary="Validate and store one telemetry reading.",
)
async def post_telemetry(
    event: TelemetryEvent,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> IngestResponse:
    return await _ingest(pipeline, event)


@router.post(
    "/pubsub/push",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=IngestResponse,
    summary="Pub/Sub push endpoint for the telemetry topic.",
)
async def post_pubsub_push(
    envelope: PubSubPushEnvelope,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> IngestResponse:
    return await _ingest(pipeline, to_telemetry_event(envelope))


@router.get(
    "/devices",
    response_model=List[DeviceSummary],
    summary="Devices tracked by the live dashboard, in series order.",
)
async def list_devices(
    dashboard: LiveDashboard = Depends(get_dashboard),
) -> List[DeviceSummary]:
    return [
        DeviceSummary(device_id=device.device_id, alias=device.alias)
        for device in dashboard.devices
    ]


@router.get(
    "/dataset",
    response_model=RenderDataset,
    summary="Latest chart dataset for every tracked device.",
)
async def get_dataset(
    dashboard: LiveDashboard = Depends(get_dashboard),
) -> RenderDataset:
    return dashboard.renderer.latest()


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    dashboard: LiveDashboard = Depends(get_dashboard),
) -> dict[str, str]:
    return {"status": "ok", "dashboard": "live" if dashboard.running else "idle"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status and /ui for the charts."}
