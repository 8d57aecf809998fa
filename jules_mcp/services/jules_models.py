"""Typed payloads for the Jules v1alpha REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..state.schedule_models import TaskPayload


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class GitHubRepo(_ApiModel):
    owner: str
    repo: str
    html_url: str | None = None
    default_branch: str | None = None


class Source(_ApiModel):
    name: str
    github_repo: GitHubRepo | None = None


class ListSourcesResponse(_ApiModel):
    sources: list[Source] = Field(default_factory=list)
    next_page_token: str | None = None


class GitHubRepoContext(_ApiModel):
    starting_branch: str = "main"


class SourceContext(_ApiModel):
    source: str
    github_repo_context: GitHubRepoContext | None = None


class Session(_ApiModel):
    name: str = ""
    id: str
    title: str | None = None
    source_context: SourceContext | None = None
    prompt: str = ""
    state: str | None = None
    automation_mode: str | None = None
    require_plan_approval: bool | None = None
    create_time: str | None = None
    update_time: str | None = None

    @property
    def repository(self) -> str | None:
        return self.source_context.source if self.source_context else None

    @property
    def branch(self) -> str:
        ctx = self.source_context.github_repo_context if self.source_context else None
        return ctx.starting_branch if ctx else "main"


class ListSessionsResponse(_ApiModel):
    sessions: list[Session] = Field(default_factory=list)
    next_page_token: str | None = None


class CreateSessionRequest(_ApiModel):
    prompt: str
    source_context: SourceContext
    title: str | None = None
    automation_mode: str | None = None
    require_plan_approval: bool | None = None

    @classmethod
    def from_task_payload(cls, payload: TaskPayload) -> CreateSessionRequest:
        return cls(
            prompt=payload.prompt,
            source_context=SourceContext(
                source=payload.source,
                github_repo_context=GitHubRepoContext(starting_branch=payload.branch or "main"),
            ),
            title=payload.title,
            automation_mode=payload.automation_mode.value,
            require_plan_approval=payload.require_plan_approval,
        )


class FileChange(_ApiModel):
    path: str = ""
    diff: str | None = None


class ChangeSet(_ApiModel):
    changes: list[FileChange] = Field(default_factory=list)


class PlanGenerated(_ApiModel):
    plan: Any = None
    change_set: ChangeSet | None = None


class ProgressUpdated(_ApiModel):
    message: str | None = None
    percentage: float | None = None


class SessionCompleted(_ApiModel):
    success: bool | None = None
    message: str | None = None
    pull_request_url: str | None = None


class Activity(_ApiModel):
    name: str = ""
    type: str = "ACTIVITY_TYPE_UNSPECIFIED"
    timestamp: str | None = None
    plan_generated: PlanGenerated | None = None
    progress_updated: ProgressUpdated | None = None
    session_completed: SessionCompleted | None = None


class ListActivitiesResponse(_ApiModel):
    activities: list[Activity] = Field(default_factory=list)
    next_page_token: str | None = None
