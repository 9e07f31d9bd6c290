"""Webmention receiver with salmention relay and live updates."""

__version__ = "0.1.0"
