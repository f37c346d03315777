"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidCredentialsError(AuthError):
    """Syndata refused the username/password pair."""


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class SessionExpiredError(AuthError):
    """Session has expired (or was revoked) and user must re-authenticate."""


class RoleNotPermittedError(AuthError, PermissionError):
    """
    The authenticated user may not perform this action.

    Raised before any request reaches Syndata.
    """
