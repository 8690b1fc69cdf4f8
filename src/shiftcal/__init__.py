"""Shift-scheduling calendar API."""

__version__ = "0.1.0"
