"""PocketCal — Google Calendar tools over MCP, gated by OAuth2.

Created: 2026-10-02
"""

__version__ = "0.1.0"
