"""Authentication and OAuth error types."""

from __future__ import annotations


class TaskboardAuthError(Exception):
    """Base class for all taskboard-auth errors."""


class OAuthConfigurationError(TaskboardAuthError):
    """Raised when the OAuth client id or secret is not configured."""


class TokenExchangeError(TaskboardAuthError):
    """Raised when the provider rejects an authorization code exchange.

    Attributes:
        status_code: The HTTP status returned by the token endpoint, or ``None``
            when the response body could not be used.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class InvalidStateError(TaskboardAuthError):
    """Raised when an OAuth callback carries a missing, unknown, expired or reused state."""


class AuthenticationError(TaskboardAuthError):
    """Raised when an admin-only request has no valid admin session."""
