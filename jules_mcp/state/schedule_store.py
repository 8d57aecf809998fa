"""Schedule store -- the durable JSON document behind the cron engine.

The whole document is the persistence unit: every mutation is a full
load-modify-save round trip.  There is no file lock, so two concurrent
mutations race and the last write wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from ..config.settings import cfg
from ..util.async_helpers import run_sync
from .schedule_models import SCHEMA_VERSION, ScheduleDocument, ScheduledTask

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS = frozenset({SCHEMA_VERSION})


class StorageCorruptError(RuntimeError):
    """The backing file exists but does not hold a valid schedule document."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to load schedules from {path}: {reason}")
        self.path = path
        self.reason = reason


class ScheduleStore:
    """Versioned schedule document with an in-process cache."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or cfg.schedules_path
        self._cache: ScheduleDocument | None = None

    @property
    def path(self) -> Path:
        return self._path

    # -- document ------------------------------------------------------------

    async def load(self) -> ScheduleDocument:
        if self._cache is not None:
            return self._cache

        document = await run_sync(self._read)
        if document is None:
            document = ScheduleDocument()
            logger.info("[store] no schedule file at %s -- initialising empty store", self._path)
            await self.save(document)
            return document

        self._cache = document
        return document

    async def save(self, document: ScheduleDocument) -> None:
        """Persist *document* and make it the cached copy.

        Mutators edit the cached document in place before saving, so a failed
        write drops the cache and the next read goes back to the file.
        """
        try:
            await run_sync(self._write, document.to_dict())
        except BaseException:
            self._cache = None
            raise
        self._cache = document

    def invalidate_cache(self) -> None:
        self._cache = None

    # -- tasks ---------------------------------------------------------------

    async def upsert_task(self, task: ScheduledTask) -> None:
        document = await self.load()
        document.schedules[task.id] = task
        await self.save(document)

    async def get_task(self, task_id: str) -> ScheduledTask | None:
        document = await self.load()
        return document.schedules.get(task_id)

    async def get_task_by_name(self, name: str) -> ScheduledTask | None:
        document = await self.load()
        return next((t for t in document.schedules.values() if t.name == name), None)

    async def list_tasks(self) -> list[ScheduledTask]:
        document = await self.load()
        return list(document.schedules.values())

    async def delete_task(self, task_id: str) -> bool:
        document = await self.load()
        if task_id not in document.schedules:
            return False
        del document.schedules[task_id]
        await self.save(document)
        return True

    async def update_last_run(
        self, task_id: str, timestamp: str, session_id: str | None = None,
    ) -> None:
        document = await self.load()
        task = document.schedules.get(task_id)
        if task is None:
            logger.debug("[store] update_last_run: task %s no longer exists", task_id)
            return
        task.last_run = timestamp
        task.last_session_id = session_id
        await self.save(document)

    # -- recovery ------------------------------------------------------------

    def quarantine(self) -> Path | None:
        """Move the backing file aside so the next load starts empty.

        Returns the new location, or ``None`` when there was no file.
        """
        self._cache = None
        if not self._path.exists():
            return None
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        os.replace(self._path, target)
        logger.warning("[store] moved unreadable schedule file to %s", target)
        return target

    # -- file I/O (runs in the executor) ---------------------------------------

    def _read(self) -> ScheduleDocument | None:
        if not self._path.exists():
            return None
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StorageCorruptError(self._path, f"invalid JSON ({exc})") from exc
        except OSError as exc:
            raise StorageCorruptError(self._path, f"unreadable ({exc})") from exc

        try:
            document = ScheduleDocument.from_dict(raw)
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageCorruptError(self._path, str(exc)) from exc

        if document.version not in SUPPORTED_VERSIONS:
            raise StorageCorruptError(
                self._path, f"unsupported schema version {document.version!r}",
            )
        return document

    def _write(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(json.dumps(data, indent=2) + "\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
