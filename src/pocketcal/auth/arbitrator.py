# Auth Arbitrator — picks the credential for each tool call.
# Created: 2026-10-06

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pocketcal.auth.credentials import Credential
from pocketcal.auth.errors import AuthError, AuthRequiredError, InvalidArgumentsError
from pocketcal.auth.token_manager import TokenManager

logger = logging.getLogger(__name__)

ACCESS_TOKEN_FIELD = "accessToken"

_REMEDIATION = (
    "Either provide an accessToken in the request arguments, "
    "or run 'pocketcal auth' to set up stored credentials."
)


class CredentialSource(str, enum.Enum):
    EXTERNAL = "external"
    STORED = "stored"


@dataclass(frozen=True)
class ResolvedCredential:
    credential: Credential
    source: CredentialSource


class ToolCallArguments(BaseModel):
    """Tool-call arguments with an optional per-request bearer token.

    Every other key is kept as-is and forwarded to the tool.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str | None = Field(default=None, alias=ACCESS_TOKEN_FIELD, min_length=1)

    def forwarded(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class AuthArbitrator:
    """Resolves one credential per request.

    An explicit ``accessToken`` argument always wins and is used verbatim;
    otherwise the stored credential is used, refreshed first when stale.
    """

    def __init__(self, token_manager: TokenManager | None):
        self.token_manager = token_manager

    async def resolve(
        self, arguments: dict[str, Any] | None
    ) -> tuple[ResolvedCredential, dict[str, Any]]:
        """Pick the credential for a call and strip the token field from its arguments.

        Raises:
            InvalidArgumentsError: ``accessToken`` is present but not a non-empty string.
            AuthRequiredError: No explicit token and no usable stored credential.
        """
        try:
            parsed = ToolCallArguments.model_validate(arguments or {})
        except ValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(p) for p in first.get("loc", ())) or "arguments"
            raise InvalidArgumentsError(f"Invalid tool arguments ({where}): {first['msg']}") from e

        cleaned = parsed.forwarded()

        if parsed.access_token is not None:
            logger.debug("Using caller-supplied access token for this request")
            return (
                ResolvedCredential(
                    credential=Credential(access_token=parsed.access_token),
                    source=CredentialSource.EXTERNAL,
                ),
                cleaned,
            )

        manager = self.token_manager
        if manager is None or not manager.has_credential:
            raise AuthRequiredError(f"Authentication required. {_REMEDIATION}")

        if manager.validate():
            credential = manager.credential
        else:
            try:
                credential = await manager.refresh()
            except AuthError as e:
                logger.warning("Stored credential could not be refreshed: %s", e)
                raise AuthRequiredError(
                    f"Authentication required: stored credential expired and could not be "
                    f"refreshed ({e}). {_REMEDIATION}"
                ) from e

        assert credential is not None
        return ResolvedCredential(credential=credential, source=CredentialSource.STORED), cleaned
