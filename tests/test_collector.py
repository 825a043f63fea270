import pytest

from tadomon.collector import Collector, Gauge, Metrics
from tadomon.state import Update

UPDATE = {
    "homeBase": {"id": 1, "name": "home"},
    "homeState": {"presence": "HOME"},
    "weather": {
        "outsideTemperature": {"celsius": 13.0},
        "solarIntensity": {"percentage": 0},
        "weatherState": {"value": "DRIZZLE"},
    },
    "zones": [
        {
            "id": 1,
            "name": "Living room",
            "devices": [
                {
                    "deviceType": "VA02",
                    "serialNo": "VA0000000001",
                    "currentFwVersion": "215.1",
                    "connectionState": {"value": True},
                    "batteryState": "NORMAL",
                },
                {
                    "deviceType": "RU02",
                    "serialNo": "RU0000000001",
                    "currentFwVersion": "215.2",
                    "connectionState": {"value": True},
                    "batteryState": "NORMAL",
                },
            ],
            "zoneState": {
                "setting": {"power": "ON", "temperature": {"celsius": 18.0}},
                "openWindow": {"durationInSeconds": 300, "remainingTimeInSeconds": 150},
                "sensorDataPoints": {
                    "insideTemperature": {"celsius": 20.0},
                    "humidity": {"percentage": 67.0},
                },
                "activityDataPoints": {"heatingPower": {"percentage": 0}},
            },
        }
    ],
    "mobileDevices": [
        {
            "id": 1,
            "name": "owner",
            "settings": {"geoTrackingEnabled": True},
            "location": {"atHome": True, "stale": False},
        }
    ],
}

EXPECTED = """\
# HELP tado_home_state State of the home. Always 1. Label home_state specifies the state
# TYPE tado_home_state gauge
tado_home_state{home_state="HOME"} 1
# HELP tado_mobile_device_status Tado mobile device status. 1 if the device is "home"
# TYPE tado_mobile_device_status gauge
tado_mobile_device_status{name="owner"} 1
# HELP tado_outside_temp_celsius Current outside temperature in degrees celsius
# TYPE tado_outside_temp_celsius gauge
tado_outside_temp_celsius 13
# HELP tado_solar_intensity_percentage Current solar intensity in percentage (0-100)
# TYPE tado_solar_intensity_percentage gauge
tado_solar_intensity_percentage 0
# HELP tado_weather Current weather. Always one. See label 'tado_weather'
# TYPE tado_weather gauge
tado_weather{tado_weather="DRIZZLE"} 1
# HELP tado_zone_device_battery_status Tado device battery status
# TYPE tado_zone_device_battery_status gauge
tado_zone_device_battery_status{id="Living room_RU0000000001",type="RU02",zone_name="Living room"} 1
tado_zone_device_battery_status{id="Living room_VA0000000001",type="VA02",zone_name="Living room"} 1
# HELP tado_zone_device_connection_status Tado device connection status
# TYPE tado_zone_device_connection_status gauge
tado_zone_device_connection_status{firmware="215.1",id="Living room_VA0000000001",type="VA02",zone_name="Living room"} 1
tado_zone_device_connection_status{firmware="215.2",id="Living room_RU0000000001",type="RU02",zone_name="Living room"} 1
# HELP tado_zone_heating_percentage Current heating percentage in this zone in percentage (0-100)
# TYPE tado_zone_heating_percentage gauge
tado_zone_heating_percentage{zone_name="Living room"} 0
# HELP tado_zone_humidity_percentage Current humidity percentage in this zone in percentage (0-100)
# TYPE tado_zone_humidity_percentage gauge
tado_zone_humidity_percentage{zone_name="Living room"} 67
# HELP tado_zone_open_window_duration Duration of open window event in seconds
# TYPE tado_zone_open_window_duration gauge
tado_zone_open_window_duration{zone_name="Living room"} 300
# HELP tado_zone_open_window_remaining Remaining duration of open window event in seconds
# TYPE tado_zone_open_window_remaining gauge
tado_zone_open_window_remaining{zone_name="Living room"} 150
# HELP tado_zone_power_state Power status of this zone
# TYPE tado_zone_power_state gauge
tado_zone_power_state{zone_name="Living room"} 1
# HELP tado_zone_target_manual_mode 1 if this zone is in manual temp target mode
# TYPE tado_zone_target_manual_mode gauge
tado_zone_target_manual_mode{zone_name="Living room"} 0
# HELP tado_zone_target_temp_celsius Target temperature of this zone in degrees celsius
# TYPE tado_zone_target_temp_celsius gauge
tado_zone_target_temp_celsius{zone_name="Living room"} 18
# HELP tado_zone_temperature_celsius Current temperature of this zone in degrees celsius
# TYPE tado_zone_temperature_celsius gauge
tado_zone_temperature_celsius{zone_name="Living room"} 20
"""


def test_collector_process():
    metrics = Metrics()
    Collector(metrics=metrics).process(Update.from_dict(UPDATE))
    assert metrics.render() == EXPECTED


def test_metrics_render_empty():
    assert Metrics().render() == ""


def test_collector_run_consumes_stream():
    collector = Collector()
    rainy = dict(UPDATE, weather={"weatherState": {"value": "RAIN"}})
    collector.run(iter([Update.from_dict(UPDATE), Update.from_dict(rainy)]))
    text = collector.metrics.render()
    assert 'tado_weather{tado_weather="DRIZZLE"} 1' in text
    assert 'tado_weather{tado_weather="RAIN"} 1' in text


def test_collector_manual_mode_and_power_off():
    zone = {
        "id": 2,
        "name": "Attic",
        "zoneState": {
            "setting": {"power": "OFF"},
            "overlay": {"termination": {"type": "MANUAL"}},
        },
    }
    metrics = Metrics()
    Collector(metrics=metrics).process(Update.from_dict({"zones": [zone]}))
    text = metrics.render()
    assert 'tado_zone_target_manual_mode{zone_name="Attic"} 1' in text
    assert 'tado_zone_power_state{zone_name="Attic"} 0' in text
    assert 'tado_zone_target_temp_celsius{zone_name="Attic"} 0' in text
    assert "tado_zone_temperature_celsius" not in text


def test_gauge_render_and_overwrite():
    gauge = Gauge("sample", "A sample", ("b", "a"))
    gauge.set(("x", "y"), 0.5)
    gauge.set(("x", "y"), 2.25)
    assert gauge.render() == (
        "# HELP tado_sample A sample\n"
        "# TYPE tado_sample gauge\n"
        'tado_sample{a="y",b="x"} 2.25\n'
    )


def test_gauge_escapes_label_values():
    gauge = Gauge("g", "line\nbreak", ("l",), subsystem="s")
    gauge.set(('say "hi"\\',), 1)
    assert gauge.render() == (
        "# HELP tado_s_g line\\nbreak\n"
        "# TYPE tado_s_g gauge\n"
        'tado_s_g{l="say \\"hi\\"\\\\"} 1\n'
    )


def test_gauge_special_values():
    gauge = Gauge("g", "h", ("l",))
    gauge.set(("a",), float("inf"))
    gauge.set(("b",), float("nan"))
    assert gauge.render().splitlines()[2:] == ['tado_g{l="a"} +Inf', 'tado_g{l="b"} NaN']


def test_gauge_rejects_wrong_label_count():
    gauge = Gauge("g", "h", ("a", "b"))
    with pytest.raises(ValueError, match="expected 2 label values"):
        gauge.set(("only",), 1)