"""Prometheus gauges describing the state of a home."""

from __future__ import annotations

import logging
import math
import threading
from typing import Iterable, Optional, Sequence

from tadomon.state import BATTERY_NORMAL, POWER_ON, Update, Zone


class Gauge:
    """A labelled gauge rendered in the Prometheus text format."""

    def __init__(
        self,
        name: str,
        help_text: str,
        labels: Sequence[str] = (),
        *,
        namespace: str = "tado",
        subsystem: str = "",
    ) -> None:
        self.name = "_".join(part for part in (namespace, subsystem, name) if part)
        self.help = help_text
        self.label_names = tuple(labels)
        self._values: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def set(self, labels: Sequence[str], value: float) -> None:
        """Set the value of the series with the given label values."""
        labels = tuple(labels)
        if len(labels) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(labels)}"
            )
        with self._lock:
            self._values[labels] = float(value)

    def render(self) -> str:
        """The gauge in exposition format; empty if no series was set."""
        with self._lock:
            items = list(self._values.items())
        if not items:
            return ""
        series = sorted(
            f"{self.name}{self._format_labels(values)} {_format_value(value)}"
            for values, value in items
        )
        header = [f"# HELP {self.name} {_escape_help(self.help)}", f"# TYPE {self.name} gauge"]
        return "\n".join(header + series) + "\n"

    def _format_labels(self, values: tuple[str, ...]) -> str:
        if not values:
            return ""
        pairs = sorted(zip(self.label_names, values))
        return "{" + ",".join(f'{k}="{_escape_label(v)}"' for k, v in pairs) + "}"


class Metrics:
    """All gauges exported for a home."""

    def __init__(self) -> None:
        self.zone_device_battery_status = Gauge(
            "device_battery_status", "Tado device battery status",
            ("zone_name", "id", "type"), subsystem="zone",
        )
        self.zone_device_connection_status = Gauge(
            "device_connection_status", "Tado device connection status",
            ("zone_name", "id", "type", "firmware"), subsystem="zone",
        )
        self.mobile_device_status = Gauge(
            "device_status", 'Tado mobile device status. 1 if the device is "home"',
            ("name",), subsystem="mobile",
        )
        self.zone_target_temp_celsius = Gauge(
            "target_temp_celsius", "Target temperature of this zone in degrees celsius",
            ("zone_name",), subsystem="zone",
        )
        self.zone_target_manual_mode = Gauge(
            "target_manual_mode", "1 if this zone is in manual temp target mode",
            ("zone_name",), subsystem="zone",
        )
        self.zone_power_state = Gauge(
            "power_state", "Power status of this zone", ("zone_name",), subsystem="zone",
        )
        self.zone_temperature_celsius = Gauge(
            "temperature_celsius", "Current temperature of this zone in degrees celsius",
            ("zone_name",), subsystem="zone",
        )
        self.zone_heating_percentage = Gauge(
            "heating_percentage",
            "Current heating percentage in this zone in percentage (0-100)",
            ("zone_name",), subsystem="zone",
        )
        self.zone_humidity_percentage = Gauge(
            "humidity_percentage",
            "Current humidity percentage in this zone in percentage (0-100)",
            ("zone_name",), subsystem="zone",
        )
        self.outside_temperature = Gauge(
            "outside_temp_celsius", "Current outside temperature in degrees celsius",
        )
        self.outside_solar_intensity = Gauge(
            "solar_intensity_percentage", "Current solar intensity in percentage (0-100)",
        )
        self.outside_weather = Gauge(
            "weather", "Current weather. Always one. See label 'tado_weather'",
            ("tado_weather",),
        )
        self.zone_open_window_duration = Gauge(
            "open_window_duration", "Duration of open window event in seconds",
            ("zone_name",), subsystem="zone",
        )
        self.zone_open_window_remaining = Gauge(
            "open_window_remaining", "Remaining duration of open window event in seconds",
            ("zone_name",), subsystem="zone",
        )
        self.home_state = Gauge(
            "state", "State of the home. Always 1. Label home_state specifies the state",
            ("home_state",), subsystem="home",
        )

    def _gauges(self) -> list[Gauge]:
        return [value for value in vars(self).values() if isinstance(value, Gauge)]

    def render(self) -> str:
        """All gauges with at least one series, ordered by metric name."""
        return "".join(g.render() for g in sorted(self._gauges(), key=lambda g: g.name))


class Collector:
    """Turns poller updates into gauge values."""

    def __init__(
        self, metrics: Optional[Metrics] = None, logger: Optional[logging.Logger] = None
    ) -> None:
        self.metrics = Metrics() if metrics is None else metrics
        self.logger = logger or logging.getLogger(__name__)

    def run(self, updates: Iterable[Update]) -> None:
        """Process every update from the stream until it ends."""
        self.logger.debug("started")
        try:
            for update in updates:
                self.process(update)
        finally:
            self.logger.debug("stopped")

    def process(self, update: Update) -> None:
        self._collect_users(update)
        self._collect_weather(update)
        self._collect_home_state(update)
        for zone in update.zones:
            self._collect_zone_devices(zone)
            self._collect_zone_info(zone)

    def _collect_users(self, update: Update) -> None:
        for device in update.geo_tracked_devices():
            self.metrics.mobile_device_status.set((device.name,), 1.0 if device.at_home else 0.0)

    def _collect_weather(self, update: Update) -> None:
        m = self.metrics
        if update.solar_intensity is not None:
            m.outside_solar_intensity.set((), update.solar_intensity)
        if update.outside_temperature is not None:
            m.outside_temperature.set((), update.outside_temperature)
        if update.weather_state is not None:
            m.outside_weather.set((update.weather_state,), 1)

    def _collect_home_state(self, update: Update) -> None:
        if update.presence is not None:
            self.metrics.home_state.set((update.presence,), 1)

    def _collect_zone_devices(self, zone: Zone) -> None:
        m = self.metrics
        for device in zone.devices:
            device_id = f"{zone.name}_{device.serial_no}"
            m.zone_device_connection_status.set(
                (zone.name, device_id, device.device_type, device.firmware),
                1.0 if device.connected else 0.0,
            )
            m.zone_device_battery_status.set(
                (zone.name, device_id, device.device_type),
                1.0 if device.battery_state == BATTERY_NORMAL else 0.0,
            )

    def _collect_zone_info(self, zone: Zone) -> None:
        m = self.metrics
        labels = (zone.name,)
        if zone.inside_celsius is not None:
            m.zone_temperature_celsius.set(labels, zone.inside_celsius)
        m.zone_target_temp_celsius.set(labels, zone.target_temperature())
        if zone.heating_power is not None:
            m.zone_heating_percentage.set(labels, zone.heating_power)
        if zone.humidity is not None:
            m.zone_humidity_percentage.set(labels, zone.humidity)
        window = zone.open_window
        m.zone_open_window_duration.set(labels, window.duration_seconds if window else 0)
        m.zone_open_window_remaining.set(labels, window.remaining_seconds if window else 0)
        m.zone_power_state.set(labels, 1.0 if zone.power == POWER_ON else 0.0)
        m.zone_target_manual_mode.set(labels, 1.0 if zone.overlay is not None else 0.0)


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)