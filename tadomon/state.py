"""Snapshot of a home's state as delivered by the poller."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional

POWER_ON = "ON"
POWER_OFF = "OFF"
BATTERY_NORMAL = "NORMAL"
TERMINATION_MANUAL = "MANUAL"
TERMINATION_TIMER = "TIMER"
TERMINATION_NEXT_TIME_BLOCK = "NEXT_TIME_BLOCK"
PRESENCE_HOME = "HOME"
PRESENCE_AWAY = "AWAY"


@dataclass(frozen=True)
class Device:
    """A thermostat or valve installed in a zone."""

    device_type: str
    serial_no: str
    firmware: str = ""
    connected: bool = False
    battery_state: Optional[str] = None


@dataclass(frozen=True)
class Overlay:
    """A manual setting that overrides a zone's schedule."""

    termination_type: str = TERMINATION_MANUAL
    remaining_seconds: Optional[int] = None


@dataclass(frozen=True)
class OpenWindow:
    """An open-window event detected in a zone."""

    duration_seconds: int = 0
    remaining_seconds: int = 0


@dataclass(frozen=True)
class Zone:
    """A heating zone and its current state."""

    id: int
    name: str
    power: str = POWER_OFF
    setting_celsius: Optional[float] = None
    inside_celsius: Optional[float] = None
    humidity: Optional[float] = None
    heating_power: Optional[float] = None
    overlay: Optional[Overlay] = None
    open_window: Optional[OpenWindow] = None
    devices: tuple[Device, ...] = ()

    def target_temperature(self) -> float:
        """The zone's target temperature, or 0.0 when the zone is off."""
        if self.power != POWER_ON or self.setting_celsius is None:
            return 0.0
        return self.setting_celsius


@dataclass(frozen=True)
class MobileDevice:
    """A user's phone, optionally tracking whether the user is home."""

    id: int
    name: str
    geo_tracking: bool = False
    at_home: Optional[bool] = None
    stale: bool = False


@dataclass(frozen=True)
class Update:
    """Everything the poller learned about a home in one cycle."""

    home_id: Optional[int] = None
    home_name: str = ""
    presence: Optional[str] = None
    zones: tuple[Zone, ...] = ()
    mobile_devices: tuple[MobileDevice, ...] = ()
    outside_temperature: Optional[float] = None
    solar_intensity: Optional[float] = None
    weather_state: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Update":
        """Build an update from its JSON-style dictionary form."""
        home_id = _dig(data, "homeBase", "id")
        return cls(
            home_id=None if home_id is None else int(home_id),
            home_name=_dig(data, "homeBase", "name") or "",
            presence=_dig(data, "homeState", "presence"),
            zones=tuple(_zone_from_dict(z) for z in data.get("zones") or ()),
            mobile_devices=tuple(
                _mobile_device_from_dict(d) for d in data.get("mobileDevices") or ()
            ),
            outside_temperature=_float(_dig(data, "weather", "outsideTemperature", "celsius")),
            solar_intensity=_float(_dig(data, "weather", "solarIntensity", "percentage")),
            weather_state=_dig(data, "weather", "weatherState", "value"),
        )

    def get_zone(self, name: str) -> Optional[Zone]:
        """Return the zone with the given name, or None."""
        return next((zone for zone in self.zones if zone.name == name), None)

    def geo_tracked_devices(self) -> Iterator[MobileDevice]:
        """Yield the mobile devices that report a location."""
        for device in self.mobile_devices:
            if device.geo_tracking and device.at_home is not None:
                yield device


class UpdateStore:
    """Holds the latest update; safe to share between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._update: Optional[Update] = None

    def set_update(self, update: Update) -> None:
        with self._lock:
            self._update = update

    def get_update(self) -> Optional[Update]:
        """The latest update, or None if none has been received yet."""
        with self._lock:
            return self._update


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _device_from_dict(data: Mapping[str, Any]) -> Device:
    return Device(
        device_type=data.get("deviceType", ""),
        serial_no=data.get("serialNo", ""),
        firmware=data.get("currentFwVersion", ""),
        connected=bool(_dig(data, "connectionState", "value")),
        battery_state=data.get("batteryState"),
    )


def _zone_from_dict(data: Mapping[str, Any]) -> Zone:
    state = data.get("zoneState") or {}
    overlay = state.get("overlay")
    open_window = state.get("openWindow")
    remaining = _dig(overlay, "termination", "remainingTimeInSeconds")
    return Zone(
        id=int(data["id"]),
        name=data["name"],
        power=_dig(state, "setting", "power") or POWER_OFF,
        setting_celsius=_float(_dig(state, "setting", "temperature", "celsius")),
        inside_celsius=_float(_dig(state, "sensorDataPoints", "insideTemperature", "celsius")),
        humidity=_float(_dig(state, "sensorDataPoints", "humidity", "percentage")),
        heating_power=_float(_dig(state, "activityDataPoints", "heatingPower", "percentage")),
        overlay=None
        if overlay is None
        else Overlay(
            termination_type=_dig(overlay, "termination", "type") or TERMINATION_MANUAL,
            remaining_seconds=None if remaining is None else int(remaining),
        ),
        open_window=None
        if open_window is None
        else OpenWindow(
            duration_seconds=int(open_window.get("durationInSeconds") or 0),
            remaining_seconds=int(open_window.get("remainingTimeInSeconds") or 0),
        ),
        devices=tuple(_device_from_dict(d) for d in data.get("devices") or ()),
    )


def _mobile_device_from_dict(data: Mapping[str, Any]) -> MobileDevice:
    location = data.get("location")
    return MobileDevice(
        id=int(data["id"]),
        name=data["name"],
        geo_tracking=bool(_dig(data, "settings", "geoTrackingEnabled")),
        at_home=None if location is None else bool(location.get("atHome")),
        stale=bool(location.get("stale")) if location else False,
    )