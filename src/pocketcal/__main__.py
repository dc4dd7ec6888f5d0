"""PocketCal entry point.

Examples:
  pocketcal                 Serve calendar tools over MCP stdio (default)
  pocketcal serve           Same as above
  pocketcal auth            Authorize Google Calendar in the browser and save the token
  pocketcal auth --force    Re-authorize even if the saved token is still valid
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pocketcal import __version__
from pocketcal.config import get_settings
from pocketcal.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pocketcal",
        description="Google Calendar MCP server with OAuth2 credential management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "auth"],
        help="'serve' runs the MCP stdio server; 'auth' runs the browser consent flow",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="auth: print the consent URL without opening a browser",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="auth: re-authorize even if the stored credential is still valid",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: POCKETCAL_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main() -> None:
    """Main entry point."""
    args = _build_parser().parse_args()
    settings = get_settings()
    setup_logging(level=args.log_level or settings.log_level)

    try:
        if args.command == "auth":
            from pocketcal.auth.flow import run_interactive_authorization

            exit_code = asyncio.run(
                run_interactive_authorization(
                    settings, open_browser=not args.no_browser, force=args.force
                )
            )
        else:
            from pocketcal.server import serve

            exit_code = asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("PocketCal stopped.")
        exit_code = 1
    except Exception:
        logger.exception("PocketCal failed")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
