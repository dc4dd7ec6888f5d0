"""Calendar tool catalog.

Created: 2026-10-08
"""

from pocketcal.tools.calendar import build_calendar_catalog
from pocketcal.tools.protocol import BaseTool, ToolDefinition, ToolResult
from pocketcal.tools.registry import ToolCatalog

__all__ = [
    "BaseTool",
    "ToolCatalog",
    "ToolDefinition",
    "ToolResult",
    "build_calendar_catalog",
]
