"""MCP server — tool listing, authorized tool calls, stdio serving, shutdown.

Created: 2026-10-10
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from pocketcal import __version__, lifecycle
from pocketcal.auth.context import AuthContext
from pocketcal.auth.errors import AuthError, InvalidArgumentsError
from pocketcal.config import Settings
from pocketcal.dispatcher import RequestDispatcher
from pocketcal.tools.calendar import build_calendar_catalog
from pocketcal.tools.registry import ToolCatalog

logger = logging.getLogger(__name__)

SERVER_NAME = "google-calendar"


class ToolCallFailed(Exception):
    """Raised to the MCP SDK so it answers with an ``isError`` result."""


class CalendarRequestHandler:
    """Answers the two request kinds: list tools and call tool."""

    def __init__(self, context: AuthContext, catalog: ToolCatalog):
        self.context = context
        self.catalog = catalog
        self.dispatcher = RequestDispatcher(catalog)

    def list_tools(self) -> list[types.Tool]:
        return [types.Tool(**entry) for entry in self.catalog.get_definitions()]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        """Resolve a credential, dispatch, and wrap the outcome.

        Every failure comes back as an error result; nothing is raised.
        """
        try:
            resolved, cleaned = await self.context.arbitrator.resolve(arguments)
        except (AuthError, InvalidArgumentsError) as e:
            logger.info("Rejected %s: %s", name, e)
            return _error_result(str(e))

        logger.debug("Calling %s with %s credential", name, resolved.source.value)
        result = await self.dispatcher.dispatch(name, cleaned, resolved.credential)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=result.text)],
            isError=result.is_error,
        )


def _error_result(message: str) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=message)],
        isError=True,
    )


def build_server(handler: CalendarRequestHandler) -> Server:
    """Register the handler on a low-level MCP server."""
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return handler.list_tools()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        result = await handler.call_tool(name, arguments)
        text = "\n".join(c.text for c in result.content if isinstance(c, types.TextContent))
        if result.isError:
            raise ToolCallFailed(text)
        return [types.TextContent(type="text", text=text)]

    return server


async def _run_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def serve(settings: Settings) -> int:
    """Serve MCP over stdio until the client disconnects or a signal arrives.

    Returns the process exit code.
    """
    context = AuthContext.from_settings(settings)
    handler = CalendarRequestHandler(context, build_calendar_catalog(settings.http_timeout))
    server = build_server(handler)
    lifecycle.register("auth_context", shutdown=context.shutdown)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers unavailable for %s", sig)

    run_task = asyncio.create_task(_run_stdio(server))
    stop_task = asyncio.create_task(stop.wait())
    exit_code = 0
    try:
        done, _ = await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if run_task in done and run_task.exception() is not None:
            logger.error("MCP transport failed: %s", run_task.exception())
            exit_code = 1
        elif stop_task in done:
            logger.info("Shutdown signal received")
    finally:
        for task in (run_task, stop_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(run_task, stop_task, return_exceptions=True)

        if not await lifecycle.shutdown_all(timeout=settings.shutdown_timeout):
            exit_code = 1
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass

    return exit_code
