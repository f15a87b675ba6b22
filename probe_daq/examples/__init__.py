"""Probe DAQ examples module."""

from .live_monitor import LiveMonitor, main as monitor_main

__all__ = [
    "LiveMonitor",
    "monitor_main",
]
