"""Gauges, chat commands and shortcuts for monitoring and controlling Tado thermostats."""

__version__ = "0.1.0"
__all__ = ["state", "parsers", "collector", "commands", "shortcuts", "bot"]