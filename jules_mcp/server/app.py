"""MCP server -- handler registration and the ``jules-mcp`` entry point."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.lowlevel.server import request_ctx
from mcp.server.stdio import stdio_server
from pydantic import AnyUrl

from .. import __version__
from ..config import settings as settings_mod
from ..state.schedule_store import StorageCorruptError
from ..tools.handlers import TOOL_SPECS, dispatch
from .lifecycle import Runtime, build_runtime, on_shutdown, on_startup
from .mcp_logging import McpLogForwarder
from .prompts import PROMPTS, get_prompt, render_prompt
from .resources import SESSION_FULL_TEMPLATE, STATIC_RESOURCES

logger = logging.getLogger(__name__)

SERVER_NAME = "jules-mcp-server"
JSON_MIME = "application/json"

_NOISY_LOGGERS = ("asyncio", "aiohttp.access", "mcp.server.lowlevel.server")


def _quiet_noisy_loggers() -> None:
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_server(runtime: Runtime, forwarder: McpLogForwarder | None = None) -> Server:
    """Register every handler on a new low-level server.

    With a *forwarder*, the server also declares the logging capability and
    binds the forwarder to the session of each incoming request.
    """
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_resources()
    async def list_resources() -> list[types.Resource]:
        return [
            types.Resource(uri=AnyUrl(uri), name=name, description=desc, mimeType=JSON_MIME)
            for uri, name, desc in STATIC_RESOURCES
        ]

    @server.list_resource_templates()
    async def list_resource_templates() -> list[types.ResourceTemplate]:
        return [
            types.ResourceTemplate(
                uriTemplate=SESSION_FULL_TEMPLATE,
                name="Session Details",
                description="Full session details including plan and activity log",
                mimeType=JSON_MIME,
            ),
        ]

    @server.read_resource()
    async def read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
        try:
            content = await runtime.resources.read(str(uri))
        except Exception as exc:
            logger.warning("[resources] read %s failed: %s", uri, exc)
            raise ValueError(f"Failed to read resource {uri}: {exc}") from exc
        return [ReadResourceContents(content=content, mime_type=JSON_MIME)]

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=spec.name, description=spec.description, inputSchema=spec.input_schema)
            for spec in TOOL_SPECS
        ]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        result = await dispatch(runtime.tools, name, arguments)
        return [types.TextContent(type="text", text=result)]

    @server.list_prompts()
    async def list_prompts() -> list[types.Prompt]:
        return [
            types.Prompt(
                name=p.name,
                description=p.description,
                arguments=[
                    types.PromptArgument(name=a.name, description=a.description, required=a.required)
                    for a in p.arguments
                ],
            )
            for p in PROMPTS
        ]

    @server.get_prompt()
    async def get_prompt_handler(
        name: str, arguments: dict[str, str] | None,
    ) -> types.GetPromptResult:
        try:
            text = render_prompt(name, arguments)
        except ValueError as exc:
            raise ValueError(f"Failed to render prompt: {exc}") from exc
        template = get_prompt(name)
        return types.GetPromptResult(
            description=template.description if template else None,
            messages=[
                types.PromptMessage(
                    role="user", content=types.TextContent(type="text", text=text),
                ),
            ],
        )

    if forwarder is not None:
        @server.set_logging_level()
        async def set_logging_level(level: types.LoggingLevel) -> None:
            forwarder.set_mcp_level(level)
            logger.info("Host set log level to %s", level)

        _bind_sessions(server, forwarder)

    return server


def _bind_sessions(server: Server, forwarder: McpLogForwarder) -> None:
    for request_type, handler in list(server.request_handlers.items()):
        server.request_handlers[request_type] = _session_binding(handler, forwarder)


def _session_binding(
    handler: Callable[[Any], Awaitable[Any]], forwarder: McpLogForwarder,
) -> Callable[[Any], Awaitable[Any]]:
    async def bound(request: Any) -> Any:
        ctx = request_ctx.get(None)
        if ctx is not None:
            forwarder.bind(ctx.session)
        return await handler(request)

    return bound


async def serve(settings: settings_mod.Settings, *, reset_corrupt_store: bool = False) -> None:
    runtime = build_runtime(settings)
    forwarder = McpLogForwarder()
    forwarder.install()
    try:
        await on_startup(runtime, reset_corrupt_store=reset_corrupt_store)
        server = create_server(runtime, forwarder)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)

        logger.info("%s %s started", SERVER_NAME, __version__)
        async with stdio_server() as (read_stream, write_stream):
            server_task = asyncio.create_task(
                server.run(read_stream, write_stream, server.create_initialization_options()),
            )
            stop_task = asyncio.create_task(stop.wait())
            done, pending = await asyncio.wait(
                {server_task, stop_task}, return_when=asyncio.FIRST_COMPLETED,
            )
            for task in pending:
                task.cancel()
            if server_task in done:
                server_task.result()
            else:
                logger.info("Termination signal received")
    finally:
        forwarder.unbind()
        forwarder.uninstall()
        await on_shutdown(runtime)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="jules-mcp",
        description="Jules MCP server with local recurring-task scheduling (stdio transport).",
    )
    parser.add_argument(
        "--reset-corrupt-store",
        action="store_true",
        help=(
            "If the schedule file cannot be parsed, move it aside and start "
            "with an empty store instead of exiting."
        ),
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: JULES_MCP_LOG_LEVEL or INFO).",
    )
    args = parser.parse_args(argv)

    cfg = settings_mod.cfg
    cfg.reload()

    # stdout carries the protocol stream; logs go to stderr.
    logging.basicConfig(
        level=(args.log_level or cfg.log_level).upper(),
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
        stream=sys.stderr,
    )
    _quiet_noisy_loggers()

    if not cfg.api_key:
        logger.error(
            "JULES_API_KEY environment variable is required. "
            "Generate a key at https://jules.google/settings"
        )
        raise SystemExit(1)

    cfg.ensure_dirs()
    try:
        asyncio.run(serve(cfg, reset_corrupt_store=args.reset_corrupt_store))
    except StorageCorruptError as exc:
        logger.error(
            "%s -- repair or remove the file, or restart with --reset-corrupt-store", exc,
        )
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
