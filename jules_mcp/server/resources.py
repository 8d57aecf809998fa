"""Read-only resources -- JSON views of sources, sessions and schedules."""

from __future__ import annotations

import asyncio
import json
import re
from datetime import datetime
from typing import Any

from ..scheduler.engine import CronEngine
from ..services.jules_client import JulesClient
from ..services.jules_models import Activity
from ..state.schedule_store import ScheduleStore
from ..util.text import smart_truncate

SOURCES_URI = "jules://sources"
SESSIONS_URI = "jules://sessions/list"
SCHEDULES_URI = "jules://schedules"
HISTORY_URI = "jules://schedules/history"
SESSION_FULL_TEMPLATE = "jules://sessions/{id}/full"

_SESSION_FULL_RE = re.compile(r"^jules://sessions/([\w-]+)/full$")

# (uri, name, description) for the static resources.
STATIC_RESOURCES: tuple[tuple[str, str, str], ...] = (
    (SOURCES_URI, "Connected Repositories", "List of GitHub repositories connected to Jules"),
    (SESSIONS_URI, "Recent Sessions", "Summary of recent Jules coding sessions"),
    (SCHEDULES_URI, "Scheduled Tasks", "Locally-managed recurring Jules tasks"),
    (HISTORY_URI, "Schedule Execution History", "History of scheduled task executions"),
)


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2)


def _format_activity(activity: Activity) -> dict[str, Any]:
    base: dict[str, Any] = {"type": activity.type, "timestamp": activity.timestamp}
    if activity.plan_generated is not None:
        change_set = activity.plan_generated.change_set
        return {
            **base,
            "plan": activity.plan_generated.plan,
            "changesPreview": f"{len(change_set.changes)} files" if change_set else "No changes",
        }
    if activity.progress_updated is not None:
        return {
            **base,
            "message": activity.progress_updated.message,
            "percentage": activity.progress_updated.percentage,
        }
    if activity.session_completed is not None:
        return {
            **base,
            "success": activity.session_completed.success,
            "message": activity.session_completed.message,
            "pullRequestUrl": activity.session_completed.pull_request_url,
        }
    return base


class JulesResources:
    def __init__(self, client: JulesClient, store: ScheduleStore, engine: CronEngine) -> None:
        self._client = client
        self._store = store
        self._engine = engine

    async def read(self, uri: str) -> str:
        if uri == SOURCES_URI:
            return await self.get_sources()
        if uri == SESSIONS_URI:
            return await self.get_sessions_list()
        if uri == SCHEDULES_URI:
            return await self.get_schedules()
        if uri == HISTORY_URI:
            return await self.get_schedule_history()
        match = _SESSION_FULL_RE.match(uri)
        if match:
            return await self.get_session_full(match.group(1))
        raise ValueError(f"Unknown resource URI: {uri}")

    async def get_sources(self) -> str:
        response = await self._client.list_sources()
        sources = [
            {
                "name": s.name,
                "repository": f"{s.github_repo.owner}/{s.github_repo.repo}" if s.github_repo else "Unknown",
                "defaultBranch": (s.github_repo.default_branch if s.github_repo else None) or "main",
                "url": s.github_repo.html_url if s.github_repo else None,
            }
            for s in response.sources
        ]
        return _dump({
            "description": "Connected GitHub repositories available for Jules tasks",
            "count": len(sources),
            "sources": sources,
        })

    async def get_sessions_list(self) -> str:
        response = await self._client.list_sessions(50)
        sessions = [
            {
                "id": s.id,
                "title": s.title or "Untitled Task",
                "state": s.state or "UNKNOWN",
                "prompt": smart_truncate(s.prompt, 100),
                "repository": s.repository,
                "created": s.create_time,
            }
            for s in response.sessions
        ]
        return _dump({
            "description": "Recent Jules sessions (tasks)",
            "count": len(sessions),
            "sessions": sessions,
        })

    async def get_session_full(self, session_id: str) -> str:
        session, activities = await asyncio.gather(
            self._client.get_session(session_id),
            self._client.list_activities(session_id),
        )
        return _dump({
            "session": {
                "id": session.id,
                "title": session.title,
                "state": session.state,
                "prompt": session.prompt,
                "repository": session.repository,
                "branch": session.branch,
                "automationMode": session.automation_mode,
                "requirePlanApproval": session.require_plan_approval,
                "created": session.create_time,
                "updated": session.update_time,
            },
            "activities": [_format_activity(a) for a in activities.activities],
        })

    async def get_schedules(self) -> str:
        schedules = []
        for task in await self._store.list_tasks():
            next_run = self._engine.get_next_invocation(task.id)
            schedules.append({
                "id": task.id,
                "name": task.name,
                "cron": task.cron,
                "timezone": task.timezone,
                "enabled": task.enabled,
                "repository": task.task_payload.source,
                "prompt": smart_truncate(task.task_payload.prompt, 80),
                "nextRun": next_run.isoformat() if next_run else "Not scheduled",
                "lastRun": task.last_run or "Never",
                "lastSessionId": task.last_session_id,
            })
        return _dump({
            "description": "Locally-managed scheduled Jules tasks",
            "count": len(schedules),
            "schedules": schedules,
        })

    async def get_schedule_history(self) -> str:
        ran = [t for t in await self._store.list_tasks() if t.last_run]
        ran.sort(key=lambda t: _parse_ts(t.last_run), reverse=True)
        history = [
            {
                "taskName": t.name,
                "executedAt": t.last_run,
                "sessionId": t.last_session_id,
                "succeeded": t.last_session_id is not None,
                "prompt": smart_truncate(t.task_payload.prompt, 100),
            }
            for t in ran
        ]
        return _dump({
            "description": "Execution history of scheduled tasks",
            "count": len(history),
            "history": history,
        })


def _parse_ts(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0
