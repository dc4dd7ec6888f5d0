"""Process-lifetime auth context.

Built once at startup from settings and handed to the request path. It holds
the credential store, the token manager (when there is anything to manage),
the inert callback listener, and the per-request arbitrator.

Created: 2026-10-06
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pocketcal.auth.arbitrator import AuthArbitrator
from pocketcal.auth.callback_server import CallbackServer
from pocketcal.auth.client import OAuthClientConfig, load_client_config
from pocketcal.auth.credentials import CredentialStore, Found
from pocketcal.auth.token_manager import TokenManager
from pocketcal.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    store: CredentialStore
    client: OAuthClientConfig | None = None
    token_manager: TokenManager | None = None
    callback_server: CallbackServer | None = None

    def __post_init__(self) -> None:
        self.arbitrator = AuthArbitrator(self.token_manager)

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthContext:
        """Load client keys and the stored credential; neither is required."""
        client = load_client_config(settings)
        store = CredentialStore(settings.credential_path)

        loaded = store.load()
        credential = loaded.credential if isinstance(loaded, Found) else None

        token_manager = None
        if client is not None or credential is not None:
            token_manager = TokenManager(
                client,
                store,
                credential,
                refresh_margin=settings.token_refresh_margin,
                timeout=settings.http_timeout,
            )

        callback_server = None
        if client is not None and token_manager is not None:
            callback_server = CallbackServer(
                token_manager,
                host=settings.callback_host,
                port=settings.callback_port,
                path=settings.callback_path,
                single_shot=settings.callback_single_shot,
            )

        if credential is not None:
            logger.info("Stored credential loaded. Server can use stored or external tokens.")
        elif client is not None:
            logger.info(
                "OAuth client keys loaded but no stored credential (%s). "
                "Run 'pocketcal auth' or pass accessToken per request.",
                loaded.reason,
            )
        else:
            logger.info("No OAuth credentials found. Server will only work with external tokens.")

        return cls(
            store=store,
            client=client,
            token_manager=token_manager,
            callback_server=callback_server,
        )

    async def shutdown(self) -> None:
        if self.callback_server is not None:
            await self.callback_server.stop()
