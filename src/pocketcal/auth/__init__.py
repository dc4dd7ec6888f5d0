"""OAuth2 credential management for the calendar server.

Created: 2026-10-03
"""

from pocketcal.auth.arbitrator import (
    AuthArbitrator,
    CredentialSource,
    ResolvedCredential,
    ToolCallArguments,
)
from pocketcal.auth.callback_server import CallbackServer, CallbackState
from pocketcal.auth.context import AuthContext
from pocketcal.auth.credentials import Credential, CredentialStore, Found, NotFound
from pocketcal.auth.errors import (
    AuthError,
    AuthRequiredError,
    BindError,
    CredentialStoreError,
    InvalidArgumentsError,
)
from pocketcal.auth.token_manager import TokenManager

__all__ = [
    "AuthArbitrator",
    "AuthContext",
    "AuthError",
    "AuthRequiredError",
    "BindError",
    "CallbackServer",
    "CallbackState",
    "Credential",
    "CredentialSource",
    "CredentialStore",
    "CredentialStoreError",
    "Found",
    "InvalidArgumentsError",
    "NotFound",
    "ResolvedCredential",
    "TokenManager",
    "ToolCallArguments",
]
