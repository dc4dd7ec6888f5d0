# Auth error types.
# Created: 2026-10-03

from __future__ import annotations


class AuthError(RuntimeError):
    """Token exchange or refresh failed."""


class AuthRequiredError(AuthError):
    """No usable credential for this request."""


class BindError(OSError):
    """The OAuth callback listener could not bind its port."""


class CredentialStoreError(OSError):
    """Persisting the credential record failed."""


class InvalidArgumentsError(ValueError):
    """Tool-call arguments failed boundary validation."""
