# tadomon

`tadomon` turns snapshots of a Tado home into gauges and answers chat commands and
interactive shortcuts about that home. It uses only the Python standard library and needs
Python 3.10 or later.

## What is in the package

- `tadomon.state` holds the data model. `Update` is one snapshot of a home. It carries the
  home id and name, the presence state, the zones, the mobile devices and the weather outside.
  `Update.from_dict()` builds one from its JSON-style dictionary form. `Update.get_zone(name)`
  returns a zone by name. `Update.geo_tracked_devices()` yields the mobile devices that report
  a location. `Zone.target_temperature()` gives the target temperature, or `0.0` when the zone
  is off. `UpdateStore` keeps the latest update and can be shared between threads.
- `tadomon.collector` provides `Gauge`, `Metrics` and `Collector`. `Collector.process(update)`
  sets gauges for:
  - zone temperature, target temperature, humidity and heating power;
  - open-window duration and remaining time;
  - power and manual mode;
  - device battery and connection state;
  - mobile-device presence;
  - outside temperature, solar intensity and weather;
  - the home's presence state.

  `Collector.run(updates)` processes every update from an iterable. `Metrics.render()` returns
  every gauge that has a value in the Prometheus text exposition format, ordered by metric name.
- `tadomon.parsers` parses text commands. `tokenize_text()` splits text into words and keeps
  quoted phrases together. Straight, single and curly quotes all count as quotes.
  `parse_duration()` reads durations such as `1h30m`, `90s` or `1.5h` into a `timedelta`.
  `parse_set_room()` reads `<room> auto` or `<room> <temperature> [<duration>]` into a
  `SetRoomCommand`. It raises `ValueError` on bad input.
- `tadomon.commands` provides `CommandRunner`, which answers the `rooms`, `users`, `rules`,
  `refresh` and `help` commands. Each reply is an `Attachment`. `CommandRunner.dispatch()`
  posts a non-empty reply privately to the caller. `rooms` and `users` raise `NoUpdatesError`
  until an update has arrived. `zone_state(zone)` describes a zone's target and any manual
  override.
- `tadomon.shortcuts` provides the modal dialogs `SetRoomShortcut` and `SetHomeShortcut`.
  - `SetRoomShortcut` sets a room to auto mode, or to a manual temperature with an optional
    expiry time.
  - `SetHomeShortcut` sets the home to auto, home or away.
  - `Shortcuts` is a dict of handlers keyed by callback ID, and it routes each interaction to
    the right handler.
  - `time_stamp_to_duration("HH:MM", now)` gives the time until the next occurrence of that
    clock time.
- `tadomon.bot` provides `Bot`, which registers the `/tado` slash command and the shortcut
  interactions with a socket-mode event handler. Its coroutine `Bot.run()` passes every update
  from the poller to the commands and shortcuts. It runs until it is cancelled.

## The objects you supply

The package does not call any remote service. It talks to objects that you pass in, and
those objects must provide these methods:

- **Tado client:** `set_zone_overlay(home_id, zone_id, overlay)`,
  `delete_zone_overlay(home_id, zone_id)`, `set_presence_lock(home_id, presence)` and
  `delete_presence_lock(home_id)`.
- **Chat sender:** `post_ephemeral(channel, user, message)`, `post_message(channel, message)`,
  `open_view(trigger_id, view)` and `update_view(view, external_id, hash, view_id)`. Messages
  and views are plain dictionaries.
- **Poller:** `refresh()`. `Bot` also needs `subscribe()`, which returns an `asyncio.Queue` of
  `Update` objects, and `unsubscribe(queue)`.
- **Controller** (optional): `report_tasks()`, which returns a list of strings.
- **Socket-mode handler** (for `Bot`): `handle_slash_command(command, f)`,
  `handle_interaction(kind, f)`, `handle_default(f)` and a coroutine `run_event_loop()`.
  Registered callbacks are called as `f(event, client)`. The client offers `ack(request)`
  and the sender methods listed above.

## Example: exporting metrics

```python
from tadomon.state import Update
from tadomon.collector import Collector, Metrics

metrics = Metrics()
collector = Collector(metrics=metrics)
collector.process(Update.from_dict(payload))  # payload: a decoded home snapshot
print(metrics.render())
```

## Example: parsing a set-room request

```python
from tadomon.parsers import parse_set_room

cmd = parse_set_room('"living room" 21.5 2h')
# cmd.zone_name == "living room", cmd.temperature == 21.5, cmd.duration == timedelta(hours=2)
```

## What it does not do

`tadomon` is a library, not a running service. It does not include:

- a poller that fetches data from the Tado API, or any Tado or Slack client;
- an HTTP server that serves the metrics or a health endpoint;
- a rules engine that changes heating on its own;
- a command-line program.

You connect those pieces yourself, using the objects described above.

## Running the tests

```
pip install tadomon[test]
pytest
```