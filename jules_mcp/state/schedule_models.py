"""Scheduled-task data model and its persisted (camelCase JSON) form."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

SCHEMA_VERSION = "1.0.0"


class AutomationMode(str, enum.Enum):
    auto_create_pr = "AUTO_CREATE_PR"
    unspecified = "AUTOMATION_MODE_UNSPECIFIED"

    @classmethod
    def from_flag(cls, auto_create_pr: bool) -> AutomationMode:
        return cls.auto_create_pr if auto_create_pr else cls.unspecified


@dataclass
class TaskPayload:
    """Parameters of the remote session a firing creates."""

    prompt: str
    source: str
    branch: str = "main"
    automation_mode: AutomationMode = AutomationMode.auto_create_pr
    require_plan_approval: bool = False
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "prompt": self.prompt,
            "source": self.source,
            "branch": self.branch,
            "automationMode": self.automation_mode.value,
            "requirePlanApproval": self.require_plan_approval,
        }
        if self.title is not None:
            data["title"] = self.title
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskPayload:
        return cls(
            prompt=_require_str(data, "prompt"),
            source=_require_str(data, "source"),
            branch=data.get("branch") or "main",
            automation_mode=AutomationMode(data.get("automationMode", AutomationMode.unspecified.value)),
            require_plan_approval=bool(data.get("requirePlanApproval", False)),
            title=data.get("title"),
        )


@dataclass
class ScheduledTask:
    id: str
    name: str
    cron: str
    task_payload: TaskPayload
    created_at: str
    enabled: bool = True
    timezone: str | None = None
    last_run: str | None = None  # ISO-8601, set after the first firing
    last_session_id: str | None = None  # absent when the last firing failed

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "cron": self.cron,
            "taskPayload": self.task_payload.to_dict(),
        }
        if self.timezone is not None:
            data["timezone"] = self.timezone
        data["createdAt"] = self.created_at
        if self.last_run is not None:
            data["lastRun"] = self.last_run
        if self.last_session_id is not None:
            data["lastSessionId"] = self.last_session_id
        data["enabled"] = self.enabled
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduledTask:
        payload = data.get("taskPayload")
        if not isinstance(payload, dict):
            raise ValueError("taskPayload must be an object")
        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ValueError("enabled must be a boolean")
        return cls(
            id=_require_str(data, "id"),
            name=_require_str(data, "name"),
            cron=_require_str(data, "cron"),
            task_payload=TaskPayload.from_dict(payload),
            created_at=_require_str(data, "createdAt"),
            enabled=enabled,
            timezone=data.get("timezone"),
            last_run=data.get("lastRun"),
            last_session_id=data.get("lastSessionId"),
        )


@dataclass
class ScheduleDocument:
    """The single persisted unit: every task keyed by id, plus a schema tag."""

    version: str = SCHEMA_VERSION
    schedules: dict[str, ScheduledTask] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "schedules": {task_id: task.to_dict() for task_id, task in self.schedules.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> ScheduleDocument:
        if not isinstance(data, dict):
            raise ValueError("document must be a JSON object")
        version = data.get("version")
        if not isinstance(version, str):
            raise ValueError("document has no version tag")
        raw = data.get("schedules")
        if not isinstance(raw, dict):
            raise ValueError("schedules must be an object")
        schedules: dict[str, ScheduledTask] = {}
        for task_id, entry in raw.items():
            if not isinstance(entry, dict):
                raise ValueError(f"schedule {task_id!r} must be an object")
            schedules[task_id] = ScheduledTask.from_dict(entry)
        return cls(version=version, schedules=schedules)


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value
