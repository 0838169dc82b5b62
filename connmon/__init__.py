"""Periodic per-process TCP/UDP connection counts from the OS connection table."""

__version__ = "0.3.0"
