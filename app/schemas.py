"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TelemetryEvent(BaseModel):
    """A telemetry message as delivered by the transport."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: Any = Field(..., alias="deviceId", description="Identifier of the publishing device.")
    timestamp: Any = Field(..., description="Epoch milliseconds at which the message was issued.")
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Decoded message body holding temperature and humidity.",
    )


class PubSubMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: str = ""
    attributes: Dict[str, str] = Field(default_factory=dict)
    message_id: Optional[str] = Field(default=None, alias="messageId")
    publish_time: Optional[datetime] = Field(default=None, alias="publishTime")


class PubSubPushEnvelope(BaseModel):
    """Body of a Pub/Sub push subscription request."""

    message: PubSubMessage
    subscription: Optional[str] = None


class IngestResponse(BaseModel):
    """Acknowledgement returned once a message has been consumed."""

    accepted: bool
    reason: Optional[str] = Field(
        default=None, description="Why the reading was dropped, when it was."
    )
    key: Optional[str] = Field(default=None, description="Log key of the stored reading.")


class DeviceSummary(BaseModel):
    device_id: str
    alias: str


class PlotSeries(BaseModel):
    """One named line of a chart."""

    name: str
    x: List[str] = Field(default_factory=list)
    y: List[Union[int, float]] = Field(default_factory=list)


class RenderDataset(BaseModel):
    """Everything the dashboard needs for a full redraw of both charts."""

    revision: int = Field(default=0, ge=0)
    generated_at: Optional[datetime] = None
    temperature: List[PlotSeries] = Field(default_factory=list)
    humidity: List[PlotSeries] = Field(default_factory=list)
    temperature_layout: Dict[str, Any] = Field(default_factory=dict)
    humidity_layout: Dict[str, Any] = Field(default_factory=dict)
