"""Cron engine -- arms recurring tasks and fires Jules sessions on schedule."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from ..services.jules_client import JulesAPIError
from ..services.jules_models import CreateSessionRequest, Session
from ..state.schedule_models import ScheduledTask
from ..state.schedule_store import ScheduleStore
from ..util.retry import retry_with_backoff

logger = logging.getLogger(__name__)

CRON_FIELD_COUNT = 5
# Upper bound for one sleep slice, so wall-clock changes are picked up.
MAX_SLEEP_SECONDS = 30.0


class SessionCreator(Protocol):
    async def create_session(self, request: CreateSessionRequest) -> Session: ...


def resolve_timezone(name: str) -> tzinfo:
    """Return the named IANA zone.

    An unset timezone never reaches here: such schedules run on the
    process-local wall clock (see :class:`CronTimer`).
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


class CronTimer:
    """A single cron schedule bound to a callback.

    Construction parses and validates; nothing runs until :meth:`start`.
    Without a timezone, instants are computed on the naive local wall clock
    and localised one by one, so each gets the UTC offset in force on its
    own date.
    """

    def __init__(
        self,
        expression: str,
        timezone: str | None,
        callback: Callable[[], None],
        *,
        name: str = "cron-timer",
    ) -> None:
        if len(expression.split()) != CRON_FIELD_COUNT or not croniter.is_valid(expression):
            raise ValueError(f"Invalid cron expression: {expression}")
        self.expression = expression
        self._tz: tzinfo | None = resolve_timezone(timezone) if timezone else None
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._next_fire: datetime | None = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.armed:
            return
        self._next_fire = self._compute_next(self._now())
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None
        self._next_fire = None

    def next_invocation(self) -> datetime | None:
        if not self.armed:
            return None
        return self._next_fire

    def _now(self) -> datetime:
        if self._tz is None:
            return datetime.now().astimezone()
        return datetime.now(self._tz)

    def _compute_next(self, after: datetime) -> datetime:
        if self._tz is not None:
            return croniter(self.expression, after).get_next(datetime)
        wall_clock = after.astimezone().replace(tzinfo=None)
        return croniter(self.expression, wall_clock).get_next(datetime).astimezone()

    async def _run(self) -> None:
        while self._next_fire is not None:
            delay = (self._next_fire - self._now()).total_seconds()
            if delay > 0:
                await asyncio.sleep(min(delay, MAX_SLEEP_SECONDS))
                continue
            fired_for = self._next_fire
            # Missed occurrences (suspend, clock jump) collapse into this one.
            self._next_fire = self._compute_next(max(fired_for, self._now()))
            try:
                self._callback()
            except Exception:
                logger.exception("[scheduler] timer %s callback failed", self._name)


def _noop() -> None:
    return None


class CronEngine:
    """Owns the armed timers for every enabled scheduled task."""

    def __init__(
        self,
        store: ScheduleStore,
        client: SessionCreator,
        *,
        retry_attempts: int = 3,
        retry_base_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._client = client
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay
        self._sleep = sleep
        self._timers: dict[str, CronTimer] = {}
        self._inflight: set[asyncio.Task[str | None]] = set()

    @property
    def armed_task_ids(self) -> list[str]:
        return [task_id for task_id, timer in self._timers.items() if timer.armed]

    async def initialize(self) -> int:
        """Arm every enabled task in the store; returns how many were armed."""
        tasks = await self._store.list_tasks()
        logger.info("[scheduler] loading %d scheduled tasks from storage", len(tasks))

        armed = 0
        for task in tasks:
            if not task.enabled:
                logger.debug("[scheduler] %s (%s) -- skipped (disabled)", task.name, task.id)
                continue
            try:
                self.schedule_task(task)
            except Exception:
                logger.exception("[scheduler] failed to schedule %s (%s)", task.name, task.cron)
                continue
            armed += 1
            logger.info("[scheduler] scheduled %s (%s)", task.name, task.cron)

        logger.info("[scheduler] initialized -- %d/%d tasks armed", armed, len(tasks))
        return armed

    @staticmethod
    def validate_cron_expression(expression: str, timezone: str | None = None) -> bool:
        try:
            timer = CronTimer(expression, timezone, _noop, name="cron-validate")
        except Exception:
            return False
        timer.cancel()
        return True

    def schedule_task(self, task: ScheduledTask) -> None:
        """Arm *task*, replacing any timer already armed for its id.

        Must be called from a running event loop.  Raises ``ValueError`` if
        the cron expression or timezone is rejected.
        """
        self.cancel_task(task.id)
        timer = CronTimer(
            task.cron,
            task.timezone,
            lambda: self._spawn_firing(task),
            name=f"cron:{task.id}",
        )
        timer.start()
        self._timers[task.id] = timer

    def cancel_task(self, task_id: str) -> bool:
        timer = self._timers.pop(task_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def get_next_invocation(self, task_id: str) -> datetime | None:
        timer = self._timers.get(task_id)
        return timer.next_invocation() if timer else None

    def reschedule_task(self, task: ScheduledTask) -> None:
        self.cancel_task(task.id)
        self.schedule_task(task)

    def shutdown(self) -> None:
        """Cancel every armed timer.  In-flight firings are left to finish."""
        logger.info("[scheduler] shutting down (%d timers)", len(self._timers))
        for task_id, timer in list(self._timers.items()):
            timer.cancel()
            logger.debug("[scheduler] cancelled timer %s", task_id)
        self._timers.clear()

    # -- firing --------------------------------------------------------------

    def _spawn_firing(self, task: ScheduledTask) -> None:
        firing = asyncio.get_running_loop().create_task(
            self._run_firing(task), name=f"firing:{task.id}",
        )
        self._inflight.add(firing)
        firing.add_done_callback(self._inflight.discard)

    async def _run_firing(self, task: ScheduledTask) -> str | None:
        try:
            return await self.execute_task(task)
        except Exception:
            logger.exception("[scheduler] firing of %s could not be recorded", task.name)
            return None

    async def execute_task(self, task: ScheduledTask) -> str | None:
        """Create a Jules session for *task* and record the outcome.

        Returns the new session id, or ``None`` when every attempt failed.
        The history record is written in both cases.
        """
        fired_at = datetime.now(UTC).isoformat()
        logger.info("[scheduler] FIRING task %s (%s)", task.name, task.id)

        request = CreateSessionRequest.from_task_payload(task.task_payload)
        session_id: str | None = None
        try:
            session = await retry_with_backoff(
                lambda: self._client.create_session(request),
                attempts=self._retry_attempts,
                base_delay=self._retry_base_delay,
                should_retry=_is_retryable,
                sleep=self._sleep,
                label=f"[scheduler] task {task.name!r}",
            )
        except Exception as exc:
            logger.error(
                "[scheduler] task %s failed after retries: %s", task.name, exc, exc_info=True,
            )
        else:
            session_id = session.id
            logger.info("[scheduler] task %s created session %s", task.name, session_id)

        await self._store.update_last_run(task.id, fired_at, session_id)
        return session_id


def _is_retryable(exc: BaseException) -> bool:
    return not (isinstance(exc, JulesAPIError) and exc.is_permanent)
