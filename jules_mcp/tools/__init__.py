"""MCP tools -- Jules session control and recurring-task scheduling."""

from .handlers import TOOL_SPECS, JulesTools, ToolSpec, dispatch, next_steps_for_state
from .params import (
    CreateTaskParams,
    DeleteScheduleParams,
    GetSessionStatusParams,
    ListSchedulesParams,
    ManageSessionParams,
    ScheduleTaskParams,
)

__all__ = [
    "TOOL_SPECS",
    "CreateTaskParams",
    "DeleteScheduleParams",
    "GetSessionStatusParams",
    "JulesTools",
    "ListSchedulesParams",
    "ManageSessionParams",
    "ScheduleTaskParams",
    "ToolSpec",
    "dispatch",
    "next_steps_for_state",
]
