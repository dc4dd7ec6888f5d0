# Tests for the tool protocol and catalog
# Created: 2026-10-08

from typing import Any

from pocketcal.auth.credentials import Credential
from pocketcal.tools.protocol import BaseTool, ToolDefinition, ToolResult
from pocketcal.tools.registry import ToolCatalog

CRED = Credential(access_token="t")


class MockTool(BaseTool):
    """Mock tool for testing the catalog."""

    @property
    def name(self) -> str:
        return "mock_tool"

    @property
    def description(self) -> str:
        return "A mock tool."

    async def execute(self, credential: Credential, param: str) -> ToolResult:
        return self._success(f"Executed with {param} as {credential.access_token}")


class ExplodingTool(MockTool):
    @property
    def name(self) -> str:
        return "exploding"

    async def execute(self, credential: Credential, **params: Any) -> ToolResult:
        raise ConnectionError("network down")


class TestToolDefinition:
    def test_to_mcp_schema(self):
        defn = ToolDefinition(name="x", description="d", parameters={"type": "object"})
        assert defn.to_mcp_schema() == {
            "name": "x",
            "description": "d",
            "inputSchema": {"type": "object"},
        }

    def test_base_tool_defaults(self):
        tool = MockTool()
        assert tool.parameters == {"type": "object", "properties": {}, "required": []}
        assert tool.definition.name == "mock_tool"

    def test_error_helper(self):
        result = MockTool()._error("boom")
        assert result.is_error
        assert result.text == "Error: boom"


class TestToolCatalog:
    def test_register_and_get(self):
        catalog = ToolCatalog()
        tool = MockTool()
        catalog.register(tool)

        assert catalog.has("mock_tool")
        assert catalog.get("mock_tool") is tool
        assert catalog.tool_names == ["mock_tool"]
        assert len(catalog) == 1

    async def test_execute(self):
        catalog = ToolCatalog()
        catalog.register(MockTool())

        result = await catalog.execute("mock_tool", CRED, {"param": "value"})
        assert result == ToolResult("Executed with value as t")

    async def test_execute_unknown_tool(self):
        result = await ToolCatalog().execute("missing", CRED, {})
        assert result.is_error
        assert "not found" in result.text

    async def test_execute_bad_arguments(self):
        catalog = ToolCatalog()
        catalog.register(MockTool())

        result = await catalog.execute("mock_tool", CRED, {"wrong": 1})
        assert result.is_error
        assert "Invalid arguments" in result.text

    async def test_execute_tool_exception(self):
        catalog = ToolCatalog()
        catalog.register(ExplodingTool())

        result = await catalog.execute("exploding", CRED, {})
        assert result.is_error
        assert "network down" in result.text


class BrokenInternalsTool(MockTool):
    @property
    def name(self) -> str:
        return "broken_internals"

    async def execute(self, credential: Credential, param: str) -> ToolResult:
        return self._success(param + 1)


async def test_type_error_inside_tool_is_not_reported_as_bad_arguments():
    catalog = ToolCatalog()
    catalog.register(BrokenInternalsTool())

    result = await catalog.execute("broken_internals", CRED, {"param": "value"})

    assert result.is_error
    assert "Invalid arguments" not in result.text
    assert result.text.startswith("Error executing broken_internals")
