"""Projection of live windows into the chart dataset."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from app.schemas import PlotSeries, RenderDataset
from models.records import DeviceRecord, DeviceWindow

logger = logging.getLogger(__name__)

_COMMON_LAYOUT: Dict[str, Any] = {
    "titlefont": {"family": "Courier New, monospace", "size": 16, "color": "#000"},
    "xaxis": {"linecolor": "black", "linewidth": 2},
    "yaxis": {
        "titlefont": {"family": "Courier New, monospace", "size": 14, "color": "#000"},
        "linecolor": "black",
        "linewidth": 2,
    },
    "margin": {"r": 50, "pad": 0},
}


def _layout(title: str, y_title: str) -> Dict[str, Any]:
    layout = copy.deepcopy(_COMMON_LAYOUT)
    layout["title"] = f"<b>{title}</b>"
    layout["yaxis"]["title"] = f"<b>{y_title}</b>"
    return layout


TEMPERATURE_LAYOUT = _layout("Temperature live plot", "Temp (°C)")
HUMIDITY_LAYOUT = _layout("Humidity live plot", "Humidity (%)")


class PlotProjector:
    """Builds one temperature and one humidity series per tracked device.

    Series follow registry order and carry the device alias as their name.
    Devices without readings still get an empty series so the legend does
    not change shape between redraws.
    """

    def __init__(
        self,
        devices: Sequence[DeviceRecord],
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
        tz: timezone = timezone.utc,
    ) -> None:
        self.devices = list(devices)
        self.timestamp_format = timestamp_format
        self.tz = tz

    def format_timestamp(self, timestamp_ms: int) -> str:
        moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=self.tz)
        return moment.strftime(self.timestamp_format)

    def project(self, windows: Mapping[str, DeviceWindow]) -> RenderDataset:
        temperature: List[PlotSeries] = []
        humidity: List[PlotSeries] = []

        for device in self.devices:
            temperature_series, humidity_series = self._project_device(
                device, windows.get(device.device_id)
            )
            temperature.append(temperature_series)
            humidity.append(humidity_series)

        return RenderDataset(
            generated_at=datetime.now(timezone.utc),
            temperature=temperature,
            humidity=humidity,
            temperature_layout=copy.deepcopy(TEMPERATURE_LAYOUT),
            humidity_layout=copy.deepcopy(HUMIDITY_LAYOUT),
        )

    def _project_device(
        self, device: DeviceRecord, window: Optional[DeviceWindow]
    ) -> Tuple[PlotSeries, PlotSeries]:
        if window is None:
            return PlotSeries(name=device.alias), PlotSeries(name=device.alias)
        try:
            x = [self.format_timestamp(entry.timestamp) for entry in window.entries]
            temperatures = [entry.temperature for entry in window.entries]
            humidities = [entry.humidity for entry in window.entries]
        except (OverflowError, OSError, ValueError, AttributeError):
            logger.exception(
                "Failed to project device window",
                extra={"device_id": device.device_id},
            )
            return PlotSeries(name=device.alias), PlotSeries(name=device.alias)
        return (
            PlotSeries(name=device.alias, x=x, y=temperatures),
            PlotSeries(name=device.alias, x=list(x), y=humidities),
        )
