"""Parsing of text commands typed into the chat."""

from __future__ import annotations

import json
import math
import re
import struct
from dataclasses import dataclass
from datetime import timedelta
from fractions import Fraction

_USAGE = "missing parameters\nUsage: set room <room> [auto|<temperature> [<duration>]"
_QUOTES = ("\u201c", "\u201d", "'")
_WORD_PATTERN = re.compile(r'[^\t\n\f\r "]+|"[^"]*"')
_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?(ns|us|\u00b5s|\u03bcs|ms|s|m|h)")
_UNITS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_MAX_NS = 2**63 - 1


@dataclass(frozen=True)
class SetRoomCommand:
    """A request to set a room to auto mode or to a target temperature."""

    zone_name: str
    mode: str
    temperature: float = 0.0
    duration: timedelta = timedelta(0)


def parse_set_room(text: str) -> SetRoomCommand:
    """Parse '<room> auto' or '<room> <temperature> [<duration>]'."""
    args = tokenize_text(text)
    if len(args) < 2:
        raise ValueError(_USAGE)
    zone_name, mode = args[0], args[1]
    if mode == "auto":
        return SetRoomCommand(zone_name, mode)
    try:
        temperature = _parse_float32(mode)
    except ValueError:
        raise ValueError(f"invalid target temperature: {_quote(mode)}") from None
    if len(args) == 2:
        return SetRoomCommand(zone_name, mode, temperature)
    try:
        duration = parse_duration(args[2])
    except ValueError:
        raise ValueError(f"invalid duration: {_quote(args[2])}") from None
    return SetRoomCommand(zone_name, mode, temperature, duration)


def tokenize_text(text: str) -> list[str]:
    """Split text into words, keeping quoted phrases together."""
    for quote in _QUOTES:
        text = text.replace(quote, '"')
    return [match.group(0).strip('"') for match in _WORD_PATTERN.finditer(text)]


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as '1h30m', '90s' or '1.5h'."""
    error = ValueError(f"invalid duration {_quote(text)}")
    rest = text
    sign = 1
    if rest and rest[0] in "+-":
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise error
    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        if match is None:
            raise error
        whole, frac, unit = match.groups()
        if not whole and not frac:
            raise error
        value = Fraction(int(whole or "0"))
        if frac:
            value += Fraction(int(frac), 10 ** len(frac))
        total += value * _UNITS[unit]
        pos = match.end()
    nanoseconds = int(total)
    if nanoseconds > (_MAX_NS + 1 if sign < 0 else _MAX_NS):
        raise error
    nanoseconds *= sign
    return timedelta(
        seconds=nanoseconds // 1_000_000_000,
        microseconds=(nanoseconds % 1_000_000_000) / 1000,
    )


def _parse_float32(text: str) -> float:
    if "_" in text or text != text.strip():
        raise ValueError(text)
    value = float(text)
    if not math.isfinite(value):
        return value
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        raise ValueError(text) from None


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)