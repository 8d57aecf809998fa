"""Shared pytest fixtures for jules_mcp tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from jules_mcp.services.jules_client import JulesClient
from jules_mcp.state.schedule_store import ScheduleStore


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("JULES_MCP_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    monkeypatch.setenv("JULES_API_KEY", "test-key")
    for key in (
        "JULES_API_BASE_URL", "JULES_ALLOWED_REPOS", "JULES_HTTP_TIMEOUT",
        "JULES_RETRY_ATTEMPTS", "JULES_RETRY_BASE_DELAY", "JULES_MCP_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return data_dir


@pytest.fixture(autouse=True)
def _reset_singletons(_isolate_data_dir: Path):
    from jules_mcp.util.singletons import reset_all_singletons

    reset_all_singletons()
    yield
    reset_all_singletons()


@pytest.fixture()
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir


@pytest.fixture()
def store(data_dir: Path) -> ScheduleStore:
    return ScheduleStore(data_dir / "schedules.json")


@pytest.fixture()
def client() -> AsyncMock:
    return AsyncMock(spec=JulesClient)
