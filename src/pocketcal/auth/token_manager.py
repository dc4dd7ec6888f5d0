# Token Manager — validity checks, single-flight refresh, and the initial code grant.
# Created: 2026-10-04

from __future__ import annotations

import asyncio
import logging
import time
import urllib.parse
from dataclasses import dataclass, replace
from typing import Any

import httpx

from pocketcal.auth.client import OAuthClientConfig
from pocketcal.auth.credentials import Credential, CredentialStore
from pocketcal.auth.errors import AuthError, CredentialStoreError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class _TokenGrant:
    """Fields of a token endpoint reply, type-checked."""

    access_token: str
    expiry: float
    refresh_token: str | None
    scopes: frozenset[str]
    token_type: str | None

    @classmethod
    def parse(cls, data: Any) -> _TokenGrant:
        """Raises AuthError when the reply is not a usable grant."""
        if not isinstance(data, dict):
            raise AuthError("Token endpoint response is not a JSON object")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthError("Token endpoint response has no access_token")

        try:
            expires_in = float(data.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError) as e:
            raise AuthError(f"Token endpoint returned a bad expires_in: {e}") from e

        fields = {name: data.get(name) for name in ("refresh_token", "scope", "token_type")}
        for name, value in fields.items():
            if value is not None and not isinstance(value, str):
                raise AuthError(f"Token endpoint returned a non-string {name}")

        return cls(
            access_token=access_token,
            expiry=time.time() + expires_in,
            refresh_token=fields["refresh_token"] or None,
            scopes=frozenset((fields["scope"] or "").split()),
            token_type=fields["token_type"] or None,
        )


class TokenManager:
    """Owns the process-held credential.

    Only this class replaces the held credential (on refresh or code exchange);
    everyone else reads it. Refreshes are coalesced: while one token exchange is
    in flight, further ``refresh()`` callers await the same outcome instead of
    spending the refresh token a second time.
    """

    def __init__(
        self,
        client: OAuthClientConfig | None,
        store: CredentialStore,
        credential: Credential | None = None,
        *,
        refresh_margin: float = 60.0,
        timeout: float = 15.0,
    ):
        self.client = client
        self.store = store
        self._credential = credential
        self.refresh_margin = refresh_margin
        self.timeout = timeout
        self._refresh_task: asyncio.Task[Credential] | None = None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def has_credential(self) -> bool:
        return self._credential is not None

    def validate(self) -> bool:
        """Return whether the held credential can be used right now."""
        cred = self._credential
        if cred is None or not cred.access_token:
            return False
        if cred.expiry is None:
            return True
        return time.time() < cred.expiry - self.refresh_margin

    async def ensure_valid(self) -> Credential:
        """Return the held credential, refreshing it first if it is stale."""
        if self.validate():
            assert self._credential is not None
            return self._credential
        return await self.refresh()

    async def refresh(self) -> Credential:
        """Exchange the refresh token for a new access token.

        Concurrent callers share one in-flight exchange.

        Raises:
            AuthError: No refresh token, no OAuth client, or the provider
                rejected the exchange. The held credential is unchanged.
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._refresh_once())
            self._refresh_task = task
            task.add_done_callback(self._refresh_finished)
        else:
            logger.debug("Joining in-flight token refresh")
        # Shield so a cancelled waiter does not abort the exchange for the others.
        return await asyncio.shield(task)

    def _refresh_finished(self, task: asyncio.Task[Credential]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            task.exception()  # mark retrieved; waiters re-raise it themselves

    async def _refresh_once(self) -> Credential:
        current = self._credential
        if current is None:
            raise AuthError("No stored credential to refresh")
        if not current.can_refresh:
            raise AuthError("Stored credential has no refresh token and has expired")
        if self.client is None:
            raise AuthError("OAuth client keys are not configured; cannot refresh")

        grant = await self._post_token(
            {
                "refresh_token": current.refresh_token,
                "client_id": self.client.client_id,
                "client_secret": self.client.client_secret,
                "grant_type": "refresh_token",
            }
        )

        refreshed = replace(
            current,
            access_token=grant.access_token,
            expiry=grant.expiry,
            refresh_token=grant.refresh_token or current.refresh_token,
            scopes=grant.scopes or current.scopes,
            token_type=grant.token_type or current.token_type,
        )
        self._install(refreshed)
        logger.info("Refreshed Google Calendar access token")
        return refreshed

    def authorization_url(self, state: str = "") -> str:
        """Build the provider consent URL for the interactive flow."""
        if self.client is None:
            raise AuthError("OAuth client keys are not configured")

        params = {
            "client_id": self.client.client_id,
            "redirect_uri": self.client.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.client.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state

        return f"{self.client.auth_url}?{urllib.parse.urlencode(params)}"

    async def exchange_code(self, code: str) -> Credential:
        """Exchange an authorization code for the initial credential.

        Raises:
            AuthError: The provider rejected the code or the client is missing.
        """
        if self.client is None:
            raise AuthError("OAuth client keys are not configured")

        grant = await self._post_token(
            {
                "code": code,
                "client_id": self.client.client_id,
                "client_secret": self.client.client_secret,
                "redirect_uri": self.client.redirect_uri,
                "grant_type": "authorization_code",
            }
        )

        credential = Credential(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expiry=grant.expiry,
            scopes=grant.scopes or frozenset(self.client.scopes),
            token_type=grant.token_type or "Bearer",
        )
        if not credential.refresh_token:
            logger.warning(
                "Provider returned no refresh token; the credential cannot be renewed "
                "once it expires"
            )
        self._install(credential)
        logger.info("Obtained Google Calendar credential via authorization code")
        return credential

    async def _post_token(self, form: dict[str, Any]) -> _TokenGrant:
        assert self.client is not None
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.client.token_url, data=form)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            raise AuthError(
                f"Token endpoint returned {e.response.status_code}: {_describe_error(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise AuthError(f"Token endpoint unreachable: {e}") from e
        except ValueError as e:
            raise AuthError(f"Token endpoint returned invalid JSON: {e}") from e

        return _TokenGrant.parse(data)

    def _install(self, credential: Credential) -> None:
        self._credential = credential
        try:
            self.store.save(credential)
        except CredentialStoreError as e:
            logger.warning("Keeping credential in memory only: %s", e)


def _describe_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or "(empty body)"
    if isinstance(body, dict):
        return str(body.get("error_description") or body.get("error") or body)
    return str(body)
