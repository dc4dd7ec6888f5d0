# Credential Store — single-slot OAuth credential persistence.
# Created: 2026-10-03
#
# The record lives at one fixed path (default ~/.pocketcal/oauth/google_calendar.json),
# is written atomically (temp file + rename) and is chmod 0600.

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pocketcal.auth.errors import CredentialStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """OAuth 2.0 credential for one identity."""

    access_token: str
    refresh_token: str | None = None
    expiry: float | None = None  # Unix timestamp
    scopes: frozenset[str] = field(default_factory=frozenset)
    token_type: str = "Bearer"

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def to_record(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry,
            "scopes": sorted(self.scopes),
            "token_type": self.token_type,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Credential:
        """Build a Credential from a persisted mapping.

        Also accepts Google's token file layout (``expiry_date`` in milliseconds,
        ``scope`` as a space-separated string).
        """
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("record has no access_token")

        expiry = data.get("expiry")
        if expiry is None and data.get("expiry_date") is not None:
            expiry = float(data["expiry_date"]) / 1000.0

        scopes = data.get("scopes")
        if scopes is None:
            scopes = (data.get("scope") or "").split()

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expiry=float(expiry) if expiry is not None else None,
            scopes=frozenset(scopes),
            token_type=data.get("token_type") or "Bearer",
        )


@dataclass(frozen=True)
class Found:
    credential: Credential


@dataclass(frozen=True)
class NotFound:
    reason: str = "no stored credential"


LoadResult = Found | NotFound


class CredentialStore:
    """File-based store for exactly one credential."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> LoadResult:
        """Read the persisted credential.

        A missing, unreadable or malformed record is reported as ``NotFound``;
        it only disables stored-credential mode.
        """
        if not self.path.exists():
            return NotFound(f"no credential file at {self.path}")

        try:
            data = json.loads(self.path.read_text())
            credential = Credential.from_record(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable credential file %s: %s", self.path, e)
            return NotFound(f"unreadable credential file: {e}")

        logger.debug("Loaded stored credential from %s", self.path)
        return Found(credential)

    def save(self, credential: Credential) -> None:
        """Atomically replace the persisted credential.

        Raises:
            CredentialStoreError: The record could not be written. Any previous
                record is left as it was.
        """
        payload = json.dumps(credential.to_record(), indent=2)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise CredentialStoreError(f"Could not save credential to {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("Could not remove temp file %s", tmp_name)

        logger.info("Saved OAuth credential to %s", self.path)
