# Settings — environment-driven configuration for the calendar server.
# Created: 2026-10-02

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SCOPES = ["https://www.googleapis.com/auth/calendar"]


class Settings(BaseSettings):
    """PocketCal settings.

    Every field can be set from the environment with a ``POCKETCAL_`` prefix
    (e.g. ``POCKETCAL_CALLBACK_PORT=3001``) or from a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="POCKETCAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".pocketcal",
        description="Directory holding client keys and saved tokens",
    )

    # OAuth client
    google_oauth_client_id: str | None = None
    google_oauth_client_secret: str | None = None
    oauth_keys_path: Path | None = Field(
        default=None,
        description="Google client secrets JSON (default: <config_dir>/gcp-oauth.keys.json)",
    )
    oauth_scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    # Credential persistence
    token_path: Path | None = Field(
        default=None,
        description="Saved credential (default: <config_dir>/oauth/google_calendar.json)",
    )
    token_refresh_margin: float = Field(default=60.0, ge=0)

    # Interactive authorization listener
    callback_host: str = "127.0.0.1"
    callback_port: int = Field(default=3000, ge=0, le=65535)
    callback_path: str = "/oauth2callback"
    callback_single_shot: bool = True
    auth_timeout: float = Field(default=300.0, gt=0)

    # Networking / process
    http_timeout: float = Field(default=15.0, gt=0)
    shutdown_timeout: float = Field(default=10.0, gt=0)
    log_level: str = "INFO"

    @property
    def keys_path(self) -> Path:
        return (self.oauth_keys_path or self.config_dir / "gcp-oauth.keys.json").expanduser()

    @property
    def credential_path(self) -> Path:
        return (self.token_path or self.config_dir / "oauth" / "google_calendar.json").expanduser()

    @property
    def redirect_uri(self) -> str:
        host = "localhost" if self.callback_host in ("127.0.0.1", "0.0.0.0") else self.callback_host
        return f"http://{host}:{self.callback_port}{self.callback_path}"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (cached; call ``cache_clear()`` to reload)."""
    return Settings()

