# Interactive authorization — `pocketcal auth`.
# Created: 2026-10-07

from __future__ import annotations

import logging
import sys
import webbrowser

from pocketcal.auth.context import AuthContext
from pocketcal.config import Settings

logger = logging.getLogger(__name__)


async def run_interactive_authorization(
    settings: Settings,
    *,
    open_browser: bool = True,
    force: bool = False,
) -> int:
    """Run the browser consent flow and persist the resulting credential.

    Returns a process exit code: 0 once a credential is stored (or the stored
    one is still valid and ``force`` is off), 1 otherwise.
    """
    context = AuthContext.from_settings(settings)

    if context.token_manager is not None and context.token_manager.validate() and not force:
        print("Stored credential is still valid. Use --force to re-authorize.", file=sys.stderr)
        return 0

    callback = context.callback_server
    if callback is None:
        logger.error(
            "OAuth client keys not found. Put your Google client secrets at %s "
            "or set POCKETCAL_GOOGLE_OAUTH_CLIENT_ID/_SECRET.",
            settings.keys_path,
        )
        return 1

    if not await callback.start():
        logger.error(
            "Port %s is busy. Free it or set POCKETCAL_CALLBACK_PORT "
            "(and register the new redirect URI with Google).",
            settings.callback_port,
        )
        return 1

    try:
        url = callback.authorization_url()
        print(f"\nOpen this URL to authorize Google Calendar access:\n\n  {url}\n", file=sys.stderr)
        if open_browser:
            webbrowser.open(url)

        credential = await callback.wait_for_credential(timeout=settings.auth_timeout)
        if credential is None:
            logger.error("Timed out after %.0fs waiting for authorization", settings.auth_timeout)
            return 1

        print(
            f"Authorization complete. Credential saved to {settings.credential_path}",
            file=sys.stderr,
        )
        return 0
    finally:
        await callback.stop()
