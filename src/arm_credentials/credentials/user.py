"""Username/password (resource owner) credentials."""

from __future__ import annotations

import logging

import httpx

from arm_credentials.credentials.base import TokenCredentialsBase, require_non_empty_string
from arm_credentials.credentials.cache import TokenCacheBackend
from arm_credentials.credentials.token import TokenResponse
from arm_credentials.environment import AZURE, AzureEnvironment, TokenAudience
from arm_credentials.exceptions import TokenCacheError, TokenExchangeError, UserMismatchError
from arm_credentials.models import User
from arm_credentials.utils.http import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class UserTokenCredentials(TokenCredentialsBase):
    def __init__(
        self,
        client_id: str,
        domain: str,
        username: str,
        password: str,
        token_audience: str | TokenAudience | None = None,
        environment: AzureEnvironment = AZURE,
        token_cache: TokenCacheBackend | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        require_non_empty_string(client_id, "clientId")
        require_non_empty_string(domain, "domain")
        require_non_empty_string(username, "username")
        require_non_empty_string(password, "password")
        super().__init__(
            client_id,
            domain,
            token_audience,
            environment,
            token_cache,
            http_client=http_client,
            timeout_seconds=timeout_seconds,
        )
        self.username = username
        self.password = password

    def __repr__(self) -> str:
        return f"UserTokenCredentials(username={self.username!r}, domain={self.domain!r})"

    def cross_check_username_with_token(self, user_id_from_token: str | None) -> bool:
        # Casing differs between the directory and what users type.
        if not user_id_from_token:
            return False
        return self.username.lower() == user_id_from_token.lower()

    async def get_token(self) -> TokenResponse:
        """Return a cached token for the user or sign in with the password.

        Raises:
            UserMismatchError: The issued token belongs to a different user.
            TokenExchangeError: The directory rejected the sign-in.
        """
        try:
            return await self.get_token_from_cache(self.username)
        except (TokenCacheError, TokenExchangeError) as exc:
            logger.debug("No cached token for %s (%s), signing in", self.username, exc)

        return await self._acquire_with_password(self.auth_context.authority, None)

    async def get_token_for_resource(
        self, resource: str, authority: str | None = None
    ) -> TokenResponse:
        context = self.context_for(authority) if authority else self.auth_context
        try:
            return await context.acquire_token(resource, self.username, self.client_id)
        except (TokenCacheError, TokenExchangeError):
            return await self._acquire_with_password(context.authority, resource)

    async def _acquire_with_password(self, authority: str, resource: str | None) -> TokenResponse:
        context = self.context_for(authority)
        resource = resource or self.get_active_directory_resource_id()
        token = await context.acquire_token_with_username_password(
            resource,
            self.username,
            self.password,
            self.client_id,
        )
        if not self.cross_check_username_with_token(token.user_id):
            raise UserMismatchError(token.user_id, self.username)
        await context.store_token(token, resource, self.client_id, token.user_id)
        return token

    def subscription_user(self) -> User:
        return User(name=self.username, type="user")
