"""Tool handlers -- Jules sessions and the recurring-task admission flow.

Every handler returns a JSON envelope string: ``{"success": true, ...}`` on
success and ``{"success": false, "error": "..."}`` on any failure.  Nothing
is raised across the tool boundary.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from ..scheduler.engine import CronEngine, resolve_timezone
from ..security.repositories import RepositoryValidator
from ..services.jules_client import JulesClient
from ..services.jules_models import CreateSessionRequest
from ..state.schedule_models import AutomationMode, ScheduledTask, TaskPayload
from ..state.schedule_store import ScheduleStore
from ..util.text import smart_truncate
from .params import (
    CreateTaskParams,
    DeleteScheduleParams,
    GetSessionStatusParams,
    ListSchedulesParams,
    ManageSessionParams,
    ScheduleTaskParams,
)

logger = logging.getLogger(__name__)

SESSION_URL = "https://jules.google/sessions/{id}"

_NEXT_STEPS: dict[str, str] = {
    "QUEUED": "Session is queued. Wait for it to start planning.",
    "PLANNING": "Jules is generating a plan. Wait for plan completion.",
    "AWAITING_PLAN_APPROVAL": (
        "Plan is ready. Read jules://sessions/{id}/full to review the plan, "
        "then call manage_session with action=approve_plan to proceed."
    ),
    "IN_PROGRESS": "Session is executing. Monitor progress via jules://sessions/{id}/full.",
    "COMPLETED": "Session completed. Check the final activity for Pull Request URL or artifacts.",
    "FAILED": "Session failed. Review activities to diagnose the issue.",
    "CANCELED": "Session was canceled.",
}


def next_steps_for_state(state: str | None) -> str:
    return _NEXT_STEPS.get(state or "", "Unknown state. Check session activities.")


def _envelope_error(exc: BaseException) -> str:
    if isinstance(exc, ValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in exc.errors()
        )
    else:
        message = str(exc) or type(exc).__name__
    return json.dumps({"success": False, "error": message})


class JulesTools:
    """Tool implementations wired to the client, store and engine."""

    def __init__(
        self,
        client: JulesClient,
        store: ScheduleStore,
        engine: CronEngine,
        repositories: RepositoryValidator,
    ) -> None:
        self._client = client
        self._store = store
        self._engine = engine
        self._repositories = repositories

    async def _run(self, operation: Callable[[], Awaitable[dict[str, Any]]]) -> str:
        try:
            result = await operation()
        except Exception as exc:
            logger.warning("[tools] operation failed: %s", exc)
            return _envelope_error(exc)
        return json.dumps({"success": True, **result})

    # -- sessions ------------------------------------------------------------

    async def create_coding_task(self, params: CreateTaskParams) -> str:
        async def op() -> dict[str, Any]:
            self._repositories.validate(params.source)
            payload = TaskPayload(
                prompt=params.prompt,
                source=params.source,
                branch=params.branch,
                automation_mode=AutomationMode.from_flag(params.auto_create_pr),
                require_plan_approval=params.require_plan_approval,
                title=params.title,
            )
            session = await self._client.create_session(
                CreateSessionRequest.from_task_payload(payload),
            )
            if params.require_plan_approval:
                message = (
                    "Session created and waiting for plan approval. Use "
                    "jules://sessions/{id}/full to review the plan, then call "
                    "manage_session with action=approve_plan."
                )
            else:
                message = "Session created and executing automatically."
            return {
                "sessionId": session.id,
                "state": session.state,
                "message": message,
                "monitorUrl": SESSION_URL.format(id=session.id),
            }

        return await self._run(op)

    async def manage_session(self, params: ManageSessionParams) -> str:
        async def op() -> dict[str, Any]:
            if params.action == "approve_plan":
                session = await self._client.approve_plan(params.session_id)
                return {
                    "message": "Plan approved. Session is now executing.",
                    "newState": session.state,
                }
            if not params.message:
                raise ValueError("Message is required for send_message action")
            session = await self._client.send_message(params.session_id, params.message)
            return {"message": "Feedback sent to session", "newState": session.state}

        return await self._run(op)

    async def get_session_status(self, params: GetSessionStatusParams) -> str:
        async def op() -> dict[str, Any]:
            session = await self._client.get_session(params.session_id)
            return {
                "sessionId": session.id,
                "title": session.title,
                "state": session.state,
                "prompt": session.prompt,
                "repository": session.repository,
                "updated": session.update_time,
                "nextSteps": next_steps_for_state(session.state),
            }

        return await self._run(op)

    # -- schedules -----------------------------------------------------------

    async def schedule_recurring_task(self, params: ScheduleTaskParams) -> str:
        async def op() -> dict[str, Any]:
            if not CronEngine.validate_cron_expression(params.cron_expression):
                raise ValueError(
                    f"Invalid cron expression: {params.cron_expression}. "
                    "Format: minute hour day month weekday"
                )
            if params.timezone:
                resolve_timezone(params.timezone)

            if await self._store.get_task_by_name(params.task_name) is not None:
                raise ValueError(
                    f'A schedule named "{params.task_name}" already exists. '
                    "Use delete_schedule first or choose a different name."
                )

            self._repositories.validate(params.source)

            task = ScheduledTask(
                id=str(uuid.uuid4()),
                name=params.task_name,
                cron=params.cron_expression,
                task_payload=TaskPayload(
                    prompt=params.prompt,
                    source=params.source,
                    branch=params.branch,
                    automation_mode=AutomationMode.from_flag(params.auto_create_pr),
                    require_plan_approval=params.require_plan_approval,
                    title=params.title,
                ),
                timezone=params.timezone,
                created_at=datetime.now(UTC).isoformat(),
                enabled=True,
            )

            await self._store.upsert_task(task)
            self._engine.schedule_task(task)
            logger.info("[tools] scheduled %s (%s) as %s", task.name, task.cron, task.id)

            next_run = self._engine.get_next_invocation(task.id)
            return {
                "message": f'Task "{params.task_name}" scheduled successfully',
                "scheduleId": task.id,
                "cron": params.cron_expression,
                "nextExecution": next_run.isoformat() if next_run else "Unknown",
            }

        return await self._run(op)

    async def list_schedules(self, params: ListSchedulesParams | None = None) -> str:
        async def op() -> dict[str, Any]:
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
                    "prompt": smart_truncate(task.task_payload.prompt, 60),
                    "nextRun": next_run.isoformat() if next_run else "Not scheduled",
                    "lastRun": task.last_run or "Never",
                    "lastSessionId": task.last_session_id,
                })
            return {"count": len(schedules), "schedules": schedules}

        return await self._run(op)

    async def delete_schedule(self, params: DeleteScheduleParams) -> str:
        async def op() -> dict[str, Any]:
            task = await self._store.get_task_by_name(params.task_name)
            if task is None:
                raise ValueError(f"No schedule found with name: {params.task_name}")
            self._engine.cancel_task(task.id)
            if not await self._store.delete_task(task.id):
                # Removed by a concurrent call between the lookup and the delete.
                raise ValueError(f'Schedule "{params.task_name}" was already deleted')
            logger.info("[tools] deleted schedule %s (%s)", task.name, task.id)
            return {"message": f'Schedule "{params.task_name}" deleted successfully'}

        return await self._run(op)


class ToolSpec:
    """A tool's public name, description and input model."""

    def __init__(
        self,
        name: str,
        description: str,
        params: type[BaseModel],
        handler: Callable[[JulesTools, Any], Awaitable[str]],
    ) -> None:
        self.name = name
        self.description = description
        self.params = params
        self.handler = handler

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.params.model_json_schema()


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        "create_coding_task",
        "Creates a new Jules coding session. Returns immediately with a session ID. "
        "Monitor progress via jules://sessions/{id}/full resource.",
        CreateTaskParams,
        JulesTools.create_coding_task,
    ),
    ToolSpec(
        "manage_session",
        "Manage an active Jules session: approve plans or send feedback",
        ManageSessionParams,
        JulesTools.manage_session,
    ),
    ToolSpec(
        "get_session_status",
        "Get the current status and state of a Jules session",
        GetSessionStatusParams,
        JulesTools.get_session_status,
    ),
    ToolSpec(
        "schedule_recurring_task",
        "Schedule a Jules task to run automatically on a cron schedule. "
        "The server persists the schedule and re-arms it on restart.",
        ScheduleTaskParams,
        JulesTools.schedule_recurring_task,
    ),
    ToolSpec(
        "list_schedules",
        "List all locally-managed scheduled tasks",
        ListSchedulesParams,
        JulesTools.list_schedules,
    ),
    ToolSpec(
        "delete_schedule",
        "Delete a scheduled task by name",
        DeleteScheduleParams,
        JulesTools.delete_schedule,
    ),
)

_SPECS_BY_NAME = {spec.name: spec for spec in TOOL_SPECS}


async def dispatch(tools: JulesTools, name: str, arguments: dict[str, Any] | None) -> str:
    """Validate *arguments* for tool *name* and run it; always returns an envelope."""
    spec = _SPECS_BY_NAME.get(name)
    if spec is None:
        return _envelope_error(ValueError(f"Unknown tool: {name}"))
    try:
        params = spec.params.model_validate(arguments or {})
    except ValidationError as exc:
        logger.info("[tools] %s rejected invalid input: %s", name, exc.error_count())
        return _envelope_error(exc)
    return await spec.handler(tools, params)
