# Tool protocol - credential-injected, text-result tool interface.
# Created: 2026-10-08

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any

from pocketcal.auth.credentials import Credential


@dataclass(frozen=True)
class ToolDefinition:
    """One entry of the ``tools/list`` response."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_mcp_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
        }


@dataclass(frozen=True)
class ToolResult:
    text: str
    is_error: bool = False


class BaseTool(abc.ABC):
    """A calendar operation exposed over MCP.

    Subclasses declare ``name``, ``description`` and (optionally) a JSON Schema
    in ``parameters``. ``execute`` is handed the credential resolved for the
    current call; tools never look up an identity on their own.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str: ...

    @property
    @abc.abstractmethod
    def description(self) -> str: ...

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(self.name, self.description, self.parameters)

    @abc.abstractmethod
    async def execute(self, credential: Credential, **params: Any) -> ToolResult: ...

    def _error(self, message: str) -> ToolResult:
        return ToolResult(f"Error: {message}", is_error=True)

    def _success(self, message: str) -> ToolResult:
        return ToolResult(message)
