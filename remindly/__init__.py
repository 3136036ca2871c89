"""Remindly — appointment tracking with snapshot sync and webhook reminders."""

__version__ = "0.1.0"
