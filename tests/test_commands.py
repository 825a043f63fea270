from datetime import timedelta

import pytest

from tadomon.commands import (
    Attachment,
    CommandRunner,
    NoUpdatesError,
    _duration_string,
    zone_state,
)
from tadomon.state import (
    POWER_OFF,
    POWER_ON,
    TERMINATION_MANUAL,
    TERMINATION_TIMER,
    MobileDevice,
    Overlay,
    Update,
    Zone,
)


class FakeSender:
    def __init__(self):
        self.ephemeral = []

    def post_ephemeral(self, channel_id, user_id, message):
        self.ephemeral.append((channel_id, user_id, message))


class FakeController:
    def __init__(self, tasks):
        self.tasks = tasks
        self.calls = 0

    def report_tasks(self):
        self.calls += 1
        return self.tasks


class FakePoller:
    def __init__(self):
        self.refreshed = 0

    def refresh(self):
        self.refreshed += 1


def test_list_rooms_no_update():
    with pytest.raises(NoUpdatesError):
        CommandRunner().list_rooms()


def test_list_rooms_no_rooms():
    r = CommandRunner()
    r.set_update(Update(home_id=1))
    assert r.list_rooms() == Attachment("Rooms:", ["no rooms have been found"])


def test_list_rooms_found():
    r = CommandRunner()
    r.set_update(
        Update(
            home_id=1,
            zones=(
                Zone(40, "room D", POWER_OFF, 0, 20),
                Zone(30, "room C", POWER_ON, 21, 20, overlay=Overlay(TERMINATION_TIMER, 300)),
                Zone(20, "room B", POWER_ON, 17.5, 21, overlay=Overlay(TERMINATION_MANUAL, 0)),
                Zone(10, "room A", POWER_ON, 20, 21),
            ),
        )
    )
    assert r.list_rooms() == Attachment(
        "Rooms:",
        [
            "*room A*: 21.0ºC (target: 20.0)",
            "*room B*: 21.0ºC (target: 17.5, MANUAL)",
            "*room C*: 20.0ºC (target: 21.0, MANUAL for 5m0s)",
            "*room D*: 20.0ºC (off)",
        ],
    )


def test_list_users_no_update():
    with pytest.raises(NoUpdatesError):
        CommandRunner().list_users()


def test_list_users_no_users():
    r = CommandRunner()
    r.set_update(Update(home_id=1))
    assert r.list_users() == Attachment("Users:", ["no users have been found"])


def test_list_users_found():
    r = CommandRunner()
    r.set_update(
        Update(
            home_id=1,
            mobile_devices=(
                MobileDevice(100, "user D", geo_tracking=True, at_home=False),
                MobileDevice(101, "user C", geo_tracking=True, at_home=True),
                MobileDevice(102, "user B", geo_tracking=True),
                MobileDevice(103, "user A"),
            ),
        )
    )
    assert r.list_users() == Attachment("Users:", ["*user C*: home", "*user D*: away"])


def test_list_rules_without_controller():
    with pytest.raises(RuntimeError, match="controller isn't running"):
        CommandRunner().list_rules()


def test_list_rules_none_triggered():
    controller = FakeController(None)
    r = CommandRunner(controller=controller)
    assert r.list_rules() == Attachment("Rules:", ["no rules have been triggered"])
    assert controller.calls == 1


def test_list_rules_sorted():
    r = CommandRunner(controller=FakeController(["room B: bar", "room A: foo"]))
    assert r.list_rules() == Attachment("Rules:", ["room A: foo", "room B: bar"])


def test_refresh():
    poller = FakePoller()
    r = CommandRunner(poller=poller)
    assert r.refresh().is_empty()
    assert poller.refreshed == 1


def test_help():
    assert CommandRunner().help() == Attachment(
        "Supported commands:", ["users, rooms, rules, help"]
    )


def test_dispatch_posts_response():
    sender = FakeSender()
    CommandRunner().dispatch(
        {"command": "/tado", "text": "help", "channel_id": "C1", "user_id": "U1"}, sender
    )
    assert sender.ephemeral == [
        ("C1", "U1", {"attachments": [{"title": "Supported commands:",
                                        "text": "users, rones, rules, help".replace("rones", "rooms")}]})
    ]


def test_dispatch_refresh_posts_nothing():
    sender = FakeSender()
    poller = FakePoller()
    CommandRunner(poller=poller).dispatch({"text": "refresh"}, sender)
    assert sender.ephemeral == []
    assert poller.refreshed == 1


def test_dispatch_unknown_command():
    with pytest.raises(ValueError, match="unknown command: foo"):
        CommandRunner().dispatch({"text": "foo"}, FakeSender())


def test_dispatch_no_updates_propagates():
    sender = FakeSender()
    with pytest.raises(NoUpdatesError):
        CommandRunner().dispatch({"text": "rooms"}, sender)
    assert sender.ephemeral == []


def test_attachment_format_and_empty():
    a = Attachment("Head:", ["a", "b"])
    assert a.format() == {"attachments": [{"title": "Head:", "text": "a\nb"}]}
    assert not a.is_empty()
    assert Attachment().is_empty()


def test_zone_state_timer_hours():
    zone = Zone(1, "z", POWER_ON, 21, 20, overlay=Overlay(TERMINATION_TIMER, 5400))
    assert zone_state(zone) == "target: 21.0, MANUAL for 1h30m0s"


def test_zone_state_next_block():
    zone = Zone(1, "z", POWER_ON, 19, 20, overlay=Overlay("NEXT_TIME_BLOCK", 90))
    assert zone_state(zone) == "target: 19.0, MANUAL for 1m30s"


@pytest.mark.parametrize(
    "duration, want",
    [
        (timedelta(0), "0s"),
        (timedelta(seconds=300), "5m0s"),
        (timedelta(hours=1), "1h0m0s"),
        (timedelta(milliseconds=1500), "1.5s"),
        (timedelta(milliseconds=300), "300ms"),
        (timedelta(microseconds=1500), "1.5ms"),
        (timedelta(seconds=-90), "-1m30s"),
    ],
)
def test_duration_string(duration, want):
    assert _duration_string(duration) == want