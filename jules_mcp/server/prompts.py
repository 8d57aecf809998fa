"""Prompt templates -- guided workflows rendered from ``templates/prompts``."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "prompts"


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str
    required: bool = True


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    description: str
    arguments: tuple[PromptArgument, ...]
    # Derives extra template fields from the raw arguments.
    extra_fields: Callable[[Mapping[str, str]], dict[str, str]] | None = field(default=None)

    def render(self, args: Mapping[str, str]) -> str:
        for arg in self.arguments:
            if arg.required and not args.get(arg.name):
                raise ValueError(f"Missing required argument: {arg.name}")
        values = {a.name: args.get(a.name, "") for a in self.arguments}
        if self.extra_fields is not None:
            values.update(self.extra_fields(args))
        template = (_TEMPLATES_DIR / f"{self.name}.md").read_text(encoding="utf-8")
        return template.format(**values).rstrip("\n")


_REPOSITORY = PromptArgument("repository", "Repository name (format: owner/repo)")


def _maintenance_task_list(args: Mapping[str, str]) -> dict[str, str]:
    tasks = [t.strip() for t in args.get("tasks", "").split(",") if t.strip()]
    return {"task_list": "\n".join(f"- {t}" for t in tasks)}


PROMPTS: tuple[PromptTemplate, ...] = (
    PromptTemplate(
        name="refactor_module",
        description="Guide for refactoring a specific module in a repository with clear goals",
        arguments=(
            _REPOSITORY,
            PromptArgument("module_path", "Path to the module/file to refactor"),
            PromptArgument(
                "goal",
                'Refactoring goal (e.g., "improve performance", "modernize patterns", "add type safety")',
            ),
        ),
    ),
    PromptTemplate(
        name="setup_weekly_maintenance",
        description="Set up automated weekly maintenance tasks for a repository",
        arguments=(
            _REPOSITORY,
            PromptArgument(
                "tasks",
                'Comma-separated maintenance tasks (e.g., "dependency updates, linter fixes, security audit")',
            ),
        ),
        extra_fields=_maintenance_task_list,
    ),
    PromptTemplate(
        name="audit_security",
        description="Create a comprehensive security audit task with best practices",
        arguments=(_REPOSITORY,),
    ),
    PromptTemplate(
        name="fix_failing_tests",
        description="Task template for fixing test failures",
        arguments=(
            _REPOSITORY,
            PromptArgument("test_command", 'Command to run tests (e.g., "pytest")'),
        ),
    ),
    PromptTemplate(
        name="update_dependencies",
        description="Update dependencies with breaking change handling",
        arguments=(
            _REPOSITORY,
            PromptArgument("package_manager", "Package manager (pip, uv, poetry, npm, ...)"),
        ),
    ),
)

_BY_NAME = {p.name: p for p in PROMPTS}


def get_prompt(name: str) -> PromptTemplate | None:
    return _BY_NAME.get(name)


def render_prompt(name: str, args: Mapping[str, str] | None = None) -> str:
    prompt = get_prompt(name)
    if prompt is None:
        raise ValueError(f"Prompt not found: {name}")
    return prompt.render(args or {})
