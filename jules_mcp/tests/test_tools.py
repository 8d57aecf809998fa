"""Tests for the tool handlers and dispatch."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from jules_mcp.scheduler.engine import CronEngine
from jules_mcp.security.repositories import RepositoryValidator
from jules_mcp.services.jules_client import JulesAPIError
from jules_mcp.state.schedule_store import ScheduleStore
from jules_mcp.tools.handlers import TOOL_SPECS, JulesTools, dispatch, next_steps_for_state

from .factories import make_session, make_task

_SCHEDULE_ARGS = {
    "task_name": "Weekly deps",
    "cron_expression": "0 9 * * 1",
    "prompt": "Update all dependencies to the latest versions",
    "source": "sources/github/acme/api",
    "timezone": "UTC",
}


@pytest_asyncio.fixture
async def engine(store: ScheduleStore, client: AsyncMock):
    engine = CronEngine(store, client)
    yield engine
    engine.shutdown()


def _tools(client, store, engine, allowed=()) -> JulesTools:
    return JulesTools(client, store, engine, RepositoryValidator(allowed))


async def _call(tools: JulesTools, name: str, arguments: dict | None = None) -> dict:
    return json.loads(await dispatch(tools, name, arguments))


class TestToolSpecs:
    def test_names(self) -> None:
        assert [s.name for s in TOOL_SPECS] == [
            "create_coding_task",
            "manage_session",
            "get_session_status",
            "schedule_recurring_task",
            "list_schedules",
            "delete_schedule",
        ]

    def test_input_schemas_are_objects(self) -> None:
        for spec in TOOL_SPECS:
            schema = spec.input_schema
            assert schema["type"] == "object"
        schedule = next(s for s in TOOL_SPECS if s.name == "schedule_recurring_task")
        assert set(schedule.input_schema["required"]) == {
            "task_name", "cron_expression", "prompt", "source",
        }

    def test_next_steps(self) -> None:
        assert "approve_plan" in next_steps_for_state("AWAITING_PLAN_APPROVAL")
        assert next_steps_for_state(None) == "Unknown state. Check session activities."


class TestDispatch:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, client, store, engine) -> None:
        result = await _call(_tools(client, store, engine), "nope")
        assert result == {"success": False, "error": "Unknown tool: nope"}

    @pytest.mark.asyncio
    async def test_validation_error_is_enveloped(self, client, store, engine) -> None:
        result = await _call(
            _tools(client, store, engine),
            "create_coding_task",
            {"prompt": "short", "source": "github.com/acme/api"},
        )
        assert result["success"] is False
        assert "prompt" in result["error"]
        assert "source" in result["error"]
        client.create_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_whitespace_prompt_rejected(self, client, store, engine) -> None:
        result = await _call(
            _tools(client, store, engine),
            "create_coding_task",
            {"prompt": " " * 20, "source": "sources/github/acme/api"},
        )
        assert result["success"] is False
        assert "empty or whitespace" in result["error"]


class TestSessionTools:
    @pytest.mark.asyncio
    async def test_create_coding_task(self, client, store, engine) -> None:
        client.create_session.return_value = make_session("s1", "QUEUED")
        result = await _call(_tools(client, store, engine), "create_coding_task", {
            "prompt": "Fix the flaky login test",
            "source": "sources/github/acme/api",
            "auto_create_pr": False,
        })
        assert result["success"] is True
        assert result["sessionId"] == "s1"
        assert result["monitorUrl"] == "https://jules.google/sessions/s1"
        request = client.create_session.await_args.args[0]
        assert request.automation_mode == "AUTOMATION_MODE_UNSPECIFIED"
        assert request.require_plan_approval is False

    @pytest.mark.asyncio
    async def test_create_with_plan_approval_message(self, client, store, engine) -> None:
        client.create_session.return_value = make_session("s1")
        result = await _call(_tools(client, store, engine), "create_coding_task", {
            "prompt": "Fix the flaky login test",
            "source": "sources/github/acme/api",
            "require_plan_approval": True,
        })
        assert "waiting for plan approval" in result["message"]

    @pytest.mark.asyncio
    async def test_create_blocked_by_allowlist(self, client, store, engine) -> None:
        tools = _tools(client, store, engine, allowed=["acme/web"])
        result = await _call(tools, "create_coding_task", {
            "prompt": "Fix the flaky login test",
            "source": "sources/github/acme/api",
        })
        assert result["success"] is False
        assert "not in the allowed repositories list" in result["error"]
        client.create_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_api_error_is_enveloped(self, client, store, engine) -> None:
        client.create_session.side_effect = JulesAPIError("Jules API error: 500 Internal Server Error", 500)
        result = await _call(_tools(client, store, engine), "create_coding_task", {
            "prompt": "Fix the flaky login test",
            "source": "sources/github/acme/api",
        })
        assert result == {"success": False, "error": "Jules API error: 500 Internal Server Error"}

    @pytest.mark.asyncio
    async def test_approve_plan(self, client, store, engine) -> None:
        client.approve_plan.return_value = make_session("abc", "IN_PROGRESS")
        result = await _call(_tools(client, store, engine), "manage_session", {
            "session_id": "abc", "action": "approve_plan",
        })
        assert result["success"] is True
        assert result["newState"] == "IN_PROGRESS"
        client.approve_plan.assert_awaited_once_with("abc")

    @pytest.mark.asyncio
    async def test_send_message(self, client, store, engine) -> None:
        client.send_message.return_value = make_session("abc", "IN_PROGRESS")
        result = await _call(_tools(client, store, engine), "manage_session", {
            "session_id": "abc", "action": "send_message", "message": "Also update the docs",
        })
        assert result["message"] == "Feedback sent to session"
        client.send_message.assert_awaited_once_with("abc", "Also update the docs")

    @pytest.mark.asyncio
    async def test_send_message_requires_message(self, client, store, engine) -> None:
        result = await _call(_tools(client, store, engine), "manage_session", {
            "session_id": "abc", "action": "send_message",
        })
        assert result == {"success": False, "error": "Message is required for send_message action"}

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self, client, store, engine) -> None:
        result = await _call(_tools(client, store, engine), "manage_session", {
            "session_id": "abc", "action": "cancel",
        })
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_get_session_status(self, client, store, engine) -> None:
        client.get_session.return_value = make_session(
            "abc", "AWAITING_PLAN_APPROVAL", title="Login fix", update_time="2026-01-05T10:00:00Z",
        )
        result = await _call(_tools(client, store, engine), "get_session_status", {"session_id": "abc"})
        assert result["success"] is True
        assert result["repository"] == "sources/github/acme/api"
        assert result["title"] == "Login fix"
        assert result["updated"] == "2026-01-05T10:00:00Z"
        assert "approve_plan" in result["nextSteps"]


class TestScheduleTools:
    @pytest.mark.asyncio
    async def test_schedule_persists_and_arms(self, client, store, engine) -> None:
        result = await _call(_tools(client, store, engine), "schedule_recurring_task", _SCHEDULE_ARGS)

        assert result["success"] is True
        assert result["cron"] == "0 9 * * 1"
        assert result["nextExecution"] != "Unknown"
        task = await ScheduleStore(store.path).get_task(result["scheduleId"])
        assert task is not None
        assert task.name == "Weekly deps"
        assert task.timezone == "UTC"
        assert task.task_payload.automation_mode.value == "AUTO_CREATE_PR"
        assert engine.armed_task_ids == [task.id]

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, client, store, engine) -> None:
        tools = _tools(client, store, engine)
        first = await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)
        second = await _call(tools, "schedule_recurring_task", {**_SCHEDULE_ARGS, "cron_expression": "0 3 * * *"})

        assert first["success"] is True
        assert second["success"] is False
        assert "already exists" in second["error"]
        assert len(await store.list_tasks()) == 1
        assert engine.armed_task_ids == [first["scheduleId"]]

    @pytest.mark.asyncio
    async def test_invalid_cron_rejected(self, client, store, engine) -> None:
        result = await _call(
            _tools(client, store, engine), "schedule_recurring_task",
            {**_SCHEDULE_ARGS, "cron_expression": "99 9 * * 1"},
        )
        assert result["success"] is False
        assert result["error"].startswith("Invalid cron expression: 99 9 * * 1")
        assert await store.list_tasks() == []

    @pytest.mark.asyncio
    async def test_cron_with_letters_fails_validation(self, client, store, engine) -> None:
        result = await _call(
            _tools(client, store, engine), "schedule_recurring_task",
            {**_SCHEDULE_ARGS, "cron_expression": "0 9 * * MON"},
        )
        assert result["success"] is False
        assert "cron_expression" in result["error"]

    @pytest.mark.asyncio
    async def test_unknown_timezone_rejected(self, client, store, engine) -> None:
        result = await _call(
            _tools(client, store, engine), "schedule_recurring_task",
            {**_SCHEDULE_ARGS, "timezone": "Atlantis/Capital"},
        )
        assert result["success"] is False
        assert "Atlantis/Capital" in result["error"]
        assert engine.armed_task_ids == []

    @pytest.mark.asyncio
    async def test_allowlist_applies_to_schedules(self, client, store, engine) -> None:
        result = await _call(
            _tools(client, store, engine, allowed=["acme/web"]), "schedule_recurring_task", _SCHEDULE_ARGS,
        )
        assert result["success"] is False
        assert await store.list_tasks() == []

    @pytest.mark.asyncio
    async def test_list_schedules(self, client, store, engine) -> None:
        tools = _tools(client, store, engine)
        await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)
        await store.upsert_task(make_task("off", "Paused", enabled=False, prompt="x" * 100))

        result = await _call(tools, "list_schedules", {})

        assert result["count"] == 2
        by_name = {s["name"]: s for s in result["schedules"]}
        assert by_name["Weekly deps"]["nextRun"] != "Not scheduled"
        assert by_name["Weekly deps"]["lastRun"] == "Never"
        assert by_name["Paused"]["nextRun"] == "Not scheduled"
        assert by_name["Paused"]["prompt"] == "x" * 60 + "..."

    @pytest.mark.asyncio
    async def test_list_schedules_without_arguments(self, client, store, engine) -> None:
        result = await _call(_tools(client, store, engine), "list_schedules", None)
        assert result == {"success": True, "count": 0, "schedules": []}

    @pytest.mark.asyncio
    async def test_delete_schedule(self, client, store, engine) -> None:
        tools = _tools(client, store, engine)
        created = await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)

        result = await _call(tools, "delete_schedule", {"task_name": "Weekly deps"})

        assert result == {"success": True, "message": 'Schedule "Weekly deps" deleted successfully'}
        assert engine.get_next_invocation(created["scheduleId"]) is None
        assert await ScheduleStore(store.path).list_tasks() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_schedule(self, client, store, engine) -> None:
        result = await _call(_tools(client, store, engine), "delete_schedule", {"task_name": "Ghost"})
        assert result == {"success": False, "error": "No schedule found with name: Ghost"}

    @pytest.mark.asyncio
    async def test_delete_reports_record_already_gone(self, client, store, engine, monkeypatch) -> None:
        tools = _tools(client, store, engine)
        created = await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)
        monkeypatch.setattr(store, "delete_task", AsyncMock(return_value=False))

        result = await _call(tools, "delete_schedule", {"task_name": "Weekly deps"})

        assert result == {"success": False, "error": 'Schedule "Weekly deps" was already deleted'}
        assert engine.get_next_invocation(created["scheduleId"]) is None

    @pytest.mark.asyncio
    async def test_failed_write_leaves_no_ghost_schedule(self, client, store, engine, monkeypatch) -> None:
        tools = _tools(client, store, engine)
        write = store._write

        def disk_full(data: dict) -> None:
            raise OSError(28, "No space left on device")

        await store.load()
        monkeypatch.setattr(store, "_write", disk_full)
        failed = await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)

        assert failed["success"] is False
        assert engine.armed_task_ids == []
        listed = await _call(tools, "list_schedules", {})
        assert listed["count"] == 0

        monkeypatch.setattr(store, "_write", write)
        retried = await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)
        assert retried["success"] is True

    @pytest.mark.asyncio
    async def test_name_reusable_after_delete(self, client, store, engine) -> None:
        tools = _tools(client, store, engine)
        await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)
        await _call(tools, "delete_schedule", {"task_name": "Weekly deps"})
        again = await _call(tools, "schedule_recurring_task", _SCHEDULE_ARGS)
        assert again["success"] is True
