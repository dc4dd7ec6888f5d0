# Tool catalog — the fixed set of tools this server exposes.
# Created: 2026-10-08

from __future__ import annotations

import copy
import inspect
import logging
from typing import Any

from pocketcal.auth.arbitrator import ACCESS_TOKEN_FIELD
from pocketcal.auth.credentials import Credential
from pocketcal.tools.protocol import BaseTool, ToolResult

logger = logging.getLogger(__name__)

_ACCESS_TOKEN_SCHEMA = {
    "type": "string",
    "description": (
        "Optional OAuth access token to use for this call instead of the server's "
        "stored credential"
    ),
}


class ToolCatalog:
    """
    Registry of tools.

    Usage:
        catalog = ToolCatalog()
        catalog.register(ListEventsTool())

        # Listing for MCP clients
        definitions = catalog.get_definitions()

        # Execute a tool with the credential resolved for this call
        result = await catalog.execute("list-events", credential, {"calendar_id": "primary"})
    """

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_definitions(self) -> list[dict[str, Any]]:
        """Return MCP tool entries.

        Each input schema also advertises the optional per-call access token.
        """
        definitions = []
        for tool in self._tools.values():
            entry = tool.definition.to_mcp_schema()
            schema = copy.deepcopy(entry["inputSchema"])
            schema.setdefault("properties", {})[ACCESS_TOKEN_FIELD] = dict(_ACCESS_TOKEN_SCHEMA)
            entry["inputSchema"] = schema
            definitions.append(entry)
        return definitions

    async def execute(
        self, name: str, credential: Credential, arguments: dict[str, Any]
    ) -> ToolResult:
        """Execute a tool by name with an injected credential.

        Failures are returned as error results, never raised.
        """
        tool = self._tools.get(name)
        if not tool:
            return ToolResult(
                f"Error: Tool '{name}' not found. Available: {list(self._tools.keys())}",
                is_error=True,
            )

        try:
            inspect.signature(tool.execute).bind(credential, **arguments)
        except TypeError as e:
            logger.warning("Bad arguments for %s: %s", name, e)
            return ToolResult(f"Error: Invalid arguments for {name}: {e}", is_error=True)

        try:
            logger.debug("Executing %s with %s", name, sorted(arguments))
            result = await tool.execute(credential, **arguments)
        except Exception as e:
            logger.error("%s failed: %s", name, e)
            return ToolResult(f"Error executing {name}: {e}", is_error=True)

        log_result = result.text[:200] + "..." if len(result.text) > 200 else result.text
        logger.debug("%s result: %s", name, log_result)
        return result

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)
