# Request dispatcher — routes a resolved call to the tool catalog.
# Created: 2026-10-10

from __future__ import annotations

import logging
from typing import Any

from pocketcal.auth.credentials import Credential
from pocketcal.tools.protocol import ToolResult
from pocketcal.tools.registry import ToolCatalog

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Pure routing: no auth decisions happen here."""

    def __init__(self, catalog: ToolCatalog):
        self.catalog = catalog

    async def dispatch(
        self, tool_name: str, arguments: dict[str, Any], credential: Credential
    ) -> ToolResult:
        logger.debug("Dispatching %s", tool_name)
        return await self.catalog.execute(tool_name, credential, arguments)
