"""Scheduler -- cron timers that fire Jules sessions for stored tasks."""

from .engine import (
    CRON_FIELD_COUNT,
    CronEngine,
    CronTimer,
    SessionCreator,
    resolve_timezone,
)

__all__ = [
    "CRON_FIELD_COUNT",
    "CronEngine",
    "CronTimer",
    "SessionCreator",
    "resolve_timezone",
]
