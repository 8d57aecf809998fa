"""Application lifecycle -- component wiring, startup and shutdown hooks."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config.settings import Settings
from ..scheduler.engine import CronEngine
from ..security.repositories import RepositoryValidator
from ..services.jules_client import JulesClient
from ..state.schedule_store import ScheduleStore, StorageCorruptError
from ..tools.handlers import JulesTools
from .resources import JulesResources

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Every long-lived component, constructed once per process."""

    client: JulesClient
    store: ScheduleStore
    engine: CronEngine
    tools: JulesTools
    resources: JulesResources


def build_runtime(settings: Settings) -> Runtime:
    client = JulesClient(
        settings.api_key,
        base_url=settings.api_base_url,
        timeout=settings.http_timeout,
    )
    store = ScheduleStore(settings.schedules_path)
    engine = CronEngine(
        store,
        client,
        retry_attempts=settings.retry_attempts,
        retry_base_delay=settings.retry_base_delay,
    )
    repositories = RepositoryValidator(settings.allowed_repos)
    return Runtime(
        client=client,
        store=store,
        engine=engine,
        tools=JulesTools(client, store, engine, repositories),
        resources=JulesResources(client, store, engine),
    )


async def on_startup(runtime: Runtime, *, reset_corrupt_store: bool = False) -> None:
    """Load the schedule document and arm every enabled task.

    ``StorageCorruptError`` propagates unless *reset_corrupt_store* is set, in
    which case the unreadable file is moved aside and an empty store is used.
    """
    try:
        document = await runtime.store.load()
    except StorageCorruptError as exc:
        if not reset_corrupt_store:
            raise
        logger.warning("[startup] %s", exc)
        moved = runtime.store.quarantine()
        logger.warning("[startup] starting with an empty schedule store (old file: %s)", moved)
        document = await runtime.store.load()

    logger.info(
        "[startup] schedule store %s (version %s, %d tasks)",
        runtime.store.path, document.version, len(document.schedules),
    )
    await runtime.engine.initialize()


async def on_shutdown(runtime: Runtime) -> None:
    runtime.engine.shutdown()
    await runtime.client.close()
    logger.info("[shutdown] complete")
