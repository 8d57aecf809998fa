"""Tests for prompt templates."""

from __future__ import annotations

import pytest

from jules_mcp.server.prompts import PROMPTS, get_prompt, render_prompt


class TestPrompts:
    def test_catalogue(self) -> None:
        assert {p.name for p in PROMPTS} == {
            "refactor_module",
            "setup_weekly_maintenance",
            "audit_security",
            "fix_failing_tests",
            "update_dependencies",
        }

    @pytest.mark.parametrize("prompt", PROMPTS, ids=lambda p: p.name)
    def test_every_template_renders(self, prompt) -> None:
        args = {a.name: f"<{a.name}>" for a in prompt.arguments}
        text = prompt.render(args)
        assert "<repository>" in text
        assert "{" not in text

    def test_refactor_module(self) -> None:
        text = render_prompt("refactor_module", {
            "repository": "acme/api", "module_path": "src/auth.py", "goal": "add type safety",
        })
        assert "src/auth.py" in text
        assert "Goal: add type safety" in text
        assert "sources/github/acme/api" in text

    def test_weekly_maintenance_expands_task_list(self) -> None:
        text = render_prompt("setup_weekly_maintenance", {
            "repository": "acme/api", "tasks": "dependency updates, linter fixes,, security audit",
        })
        assert "- dependency updates\n- linter fixes\n- security audit" in text
        assert '"0 3 * * 1"' in text

    def test_missing_required_argument(self) -> None:
        with pytest.raises(ValueError, match="Missing required argument: test_command"):
            render_prompt("fix_failing_tests", {"repository": "acme/api"})

    def test_unknown_prompt(self) -> None:
        assert get_prompt("nope") is None
        with pytest.raises(ValueError, match="Prompt not found: nope"):
            render_prompt("nope", {})
