"""Tool input models -- validated before any handler runs."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field

_SOURCE_PATTERN = r"^sources/github/[\w-]+/[\w-]+$"
_BRANCH_PATTERN = r"^[\w/-]+$"


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("Prompt cannot be empty or whitespace only")
    return value


PromptText = Annotated[str, AfterValidator(_not_blank)]


class CreateTaskParams(BaseModel):
    prompt: PromptText = Field(
        min_length=10,
        max_length=10000,
        description=(
            "Natural language instruction for the coding task. "
            "Be specific about files, goals, and constraints."
        ),
    )
    source: str = Field(
        pattern=_SOURCE_PATTERN,
        description=(
            "Repository resource name (format: sources/github/owner/repo). "
            "Check the jules://sources resource first."
        ),
    )
    branch: str = Field(
        default="main", pattern=_BRANCH_PATTERN, description="Git branch to base changes on",
    )
    auto_create_pr: bool = Field(
        default=True,
        description="If true, automatically creates a Pull Request upon completion",
    )
    require_plan_approval: bool = Field(
        default=False,
        description="If true, pauses at AWAITING_PLAN_APPROVAL state for manual review",
    )
    title: str | None = Field(
        default=None, max_length=200, description="Optional human-readable session title",
    )


class ManageSessionParams(BaseModel):
    session_id: str = Field(
        pattern=r"^[\w-]+$", description="The ID of the session to manage",
    )
    action: Literal["approve_plan", "send_message"] = Field(
        description="Action to perform on the session",
    )
    message: str | None = Field(
        default=None,
        min_length=1,
        max_length=5000,
        description="Message content (required for send_message action)",
    )


class GetSessionStatusParams(BaseModel):
    session_id: str = Field(
        pattern=r"^[\w-]+$", description="The ID of the session to check",
    )


class ScheduleTaskParams(BaseModel):
    task_name: str = Field(
        min_length=1,
        max_length=100,
        pattern=r"^[\w\s-]+$",
        description='Unique name for this schedule (e.g., "Weekly Dependency Update")',
    )
    cron_expression: str = Field(
        pattern=r"^[\d\s*,/-]+$",
        description=(
            'Standard cron expression (e.g., "0 9 * * 1" for Mondays at 9 AM). '
            "Format: minute hour day month weekday"
        ),
    )
    prompt: PromptText = Field(
        min_length=10, max_length=10000, description="The coding task instruction to execute",
    )
    source: str = Field(
        pattern=_SOURCE_PATTERN,
        description="Repository resource name (sources/github/owner/repo)",
    )
    branch: str = Field(default="main", pattern=_BRANCH_PATTERN, description="Git branch to target")
    auto_create_pr: bool = Field(default=True, description="Whether to auto-create PRs")
    require_plan_approval: bool = Field(
        default=False, description="Whether to require manual plan approval",
    )
    timezone: str | None = Field(
        default=None,
        description='IANA timezone for cron execution (e.g., "America/New_York"); defaults to server local time',
    )
    title: str | None = Field(
        default=None, max_length=200, description="Optional title for the created sessions",
    )


class DeleteScheduleParams(BaseModel):
    task_name: str = Field(min_length=1, description="Name of the scheduled task to delete")


class ListSchedulesParams(BaseModel):
    pass
