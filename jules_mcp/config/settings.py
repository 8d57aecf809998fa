"""Application settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import ClassVar

from ..util.env_file import EnvFile
from ..util.singletons import register_singleton

DEFAULT_API_BASE_URL = "https://jules.googleapis.com/v1alpha"


class Settings:

    _DATA_DIR_ENV: ClassVar[str] = "JULES_MCP_DATA_DIR"

    def __init__(self) -> None:
        dotenv = os.getenv("DOTENV_PATH")
        if not dotenv:
            data_dir = os.getenv(self._DATA_DIR_ENV)
            if data_dir:
                dotenv = str(Path(data_dir) / ".env")
            else:
                dotenv = ".env"
        self.env = EnvFile(dotenv)
        self.reload()

    def reload(self) -> None:
        e = self._read

        self.api_key: str = e("JULES_API_KEY")
        self.api_base_url: str = (e("JULES_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/")
        self.http_timeout: float = float(e("JULES_HTTP_TIMEOUT") or "60")

        self.retry_attempts: int = max(1, int(e("JULES_RETRY_ATTEMPTS") or "3"))
        self.retry_base_delay: float = float(e("JULES_RETRY_BASE_DELAY") or "2.0")

        raw_level = (e("JULES_MCP_LOG_LEVEL") or "INFO").upper()
        self.log_level: str = raw_level if raw_level in logging.getLevelNamesMapping() else "INFO"

        raw_repos = e("JULES_ALLOWED_REPOS")
        self.allowed_repos: frozenset[str] = frozenset(
            repo.strip() for repo in raw_repos.split(",") if repo.strip()
        ) if raw_repos else frozenset()

    @property
    def data_dir(self) -> Path:
        return Path(os.getenv(self._DATA_DIR_ENV, str(Path.home() / ".jules-mcp")))

    @property
    def schedules_path(self) -> Path:
        return self.data_dir / "schedules.json"

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


cfg = Settings()


def _reset_cfg() -> None:
    global cfg
    cfg = Settings()


register_singleton(_reset_cfg)
