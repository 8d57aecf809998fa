"""Log forwarding -- scheduler records sent to the host as ``notifications/message``."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable

import mcp.types as types
from mcp.server.session import ServerSession

FORWARDED_LOGGERS = ("jules_mcp.scheduler", "jules_mcp.server.lifecycle", "jules_mcp.server.app")

_FROM_MCP: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}


def mcp_level(levelno: int) -> types.LoggingLevel:
    if levelno >= logging.CRITICAL:
        return "critical"
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warning"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


class McpLogForwarder(logging.Handler):
    """Sends log records to the bound MCP session.

    Records emitted while no session is bound (startup, or after the host
    went away) wait in a bounded backlog and are flushed on the next
    :meth:`bind`.
    """

    def __init__(self, *, backlog: int = 100, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._session: ServerSession | None = None
        self._backlog: deque[logging.LogRecord] = deque(maxlen=backlog)
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def bound(self) -> bool:
        return self._session is not None

    def bind(self, session: ServerSession) -> None:
        if session is self._session:
            return
        self._session = session
        backlog = list(self._backlog)
        self._backlog.clear()
        for record in backlog:
            self._forward(record)

    def unbind(self) -> None:
        self._session = None

    def set_mcp_level(self, level: str) -> None:
        self.setLevel(_FROM_MCP.get(level, logging.INFO))

    def install(self, names: Iterable[str] = FORWARDED_LOGGERS) -> None:
        for name in names:
            logging.getLogger(name).addHandler(self)

    def uninstall(self, names: Iterable[str] = FORWARDED_LOGGERS) -> None:
        for name in names:
            logging.getLogger(name).removeHandler(self)

    def emit(self, record: logging.LogRecord) -> None:
        if self._session is None:
            self._backlog.append(record)
            return
        self._forward(record)

    def _forward(self, record: logging.LogRecord) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._backlog.append(record)
            return
        task = loop.create_task(
            self._session.send_log_message(
                level=mcp_level(record.levelno),
                data=self.format(record),
                logger=record.name,
            ),
        )
        self._pending.add(task)
        task.add_done_callback(self._sent)

    def _sent(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            # Stream closed; hold records until a session is bound again.
            self._session = None
