"""Error types raised by credential acquisition and request signing."""

from __future__ import annotations

SDK_INTERNAL_ERROR = "SDK_INTERNAL_ERROR"


class AuthError(Exception):
    """Base class for authentication failures, carrying a short error code."""

    def __init__(self, message: str, code: str = "auth_error") -> None:
        super().__init__(message)
        self.code = code


class CredentialValidationError(AuthError, ValueError):
    """Raised synchronously when a credential is constructed with bad arguments."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid_argument")


class TokenCacheError(AuthError):
    """Raised when the token cache cannot produce a usable entry."""


class TokenCacheMissError(TokenCacheError):
    """No valid entry exists (missing or expired without a refresh token)."""

    def __init__(self, message: str = "Entry not found in cache.") -> None:
        super().__init__(message, code="cache_miss")


class CacheInternalError(AuthError):
    """Stale entries could not be evicted from the token cache."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            f"{SDK_INTERNAL_ERROR} : critical failure while removing expired token "
            f"for service principal from token cache. {detail}",
            code="sdk_internal_error",
        )


class TokenExchangeError(AuthError):
    """The identity provider rejected a token request."""

    def __init__(
        self,
        message: str,
        code: str = "token_exchange_error",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code


class UserMismatchError(AuthError):
    """The token was issued to a different user than the one requested."""

    def __init__(self, user_id: str | None, username: str) -> None:
        super().__init__(
            f'The userId "{user_id}" in access token doesn\'t match the username '
            f'"{username}" provided during authentication.',
            code="user_mismatch",
        )
        self.user_id = user_id
        self.username = username


class InvalidTokenResponseError(AuthError):
    """A token endpoint returned a body that is not a usable token."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid_token_response")


class AzureCliError(AuthError):
    """An ``az`` invocation failed or produced unreadable output."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message, code="azure_cli_error")
        self.stderr = stderr
