# OAuth client configuration — Google client ID/secret and provider endpoints.
# Created: 2026-10-03

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from pocketcal.config import Settings

logger = logging.getLogger(__name__)


# OAuth 2.0 provider endpoints
GOOGLE_PROVIDER: dict[str, str] = {
    "auth_url": "https://accounts.google.com/o/oauth2/v2/auth",
    "token_url": "https://oauth2.googleapis.com/token",
}


@dataclass(frozen=True)
class OAuthClientConfig:
    """Registered OAuth client plus the endpoints it talks to."""

    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...] = field(default_factory=tuple)
    auth_url: str = GOOGLE_PROVIDER["auth_url"]
    token_url: str = GOOGLE_PROVIDER["token_url"]


def load_client_config(settings: Settings) -> OAuthClientConfig | None:
    """Resolve the OAuth client from settings, falling back to the keys file.

    Explicit ``google_oauth_client_id``/``google_oauth_client_secret`` win.
    Otherwise the Google client-secrets JSON at ``settings.keys_path`` is read
    (its ``installed`` or ``web`` section). Returns None when neither exists,
    which leaves the server in external-token-only mode.
    """
    scopes = tuple(settings.oauth_scopes)

    if settings.google_oauth_client_id and settings.google_oauth_client_secret:
        return OAuthClientConfig(
            client_id=settings.google_oauth_client_id,
            client_secret=settings.google_oauth_client_secret,
            redirect_uri=settings.redirect_uri,
            scopes=scopes,
        )

    path = settings.keys_path
    if not path.exists():
        logger.debug("No OAuth client keys at %s", path)
        return None

    try:
        raw = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.warning("Could not read OAuth client keys %s: %s", path, e)
        return None

    if not isinstance(raw, dict):
        logger.warning("OAuth client keys %s are not a JSON object", path)
        return None

    keys = raw.get("installed") or raw.get("web") or raw
    client_id = keys.get("client_id")
    client_secret = keys.get("client_secret")
    if not client_id or not client_secret:
        logger.warning("OAuth client keys %s lack client_id/client_secret", path)
        return None

    return OAuthClientConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=settings.redirect_uri,
        scopes=scopes,
        auth_url=keys.get("auth_uri") or GOOGLE_PROVIDER["auth_url"],
        token_url=keys.get("token_uri") or GOOGLE_PROVIDER["token_url"],
    )
