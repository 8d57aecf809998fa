"""Persistent state."""

from .schedule_models import (
    SCHEMA_VERSION,
    AutomationMode,
    ScheduleDocument,
    ScheduledTask,
    TaskPayload,
)
from .schedule_store import ScheduleStore, StorageCorruptError

__all__ = [
    "SCHEMA_VERSION",
    "AutomationMode",
    "ScheduleDocument",
    "ScheduleStore",
    "ScheduledTask",
    "StorageCorruptError",
    "TaskPayload",
]
