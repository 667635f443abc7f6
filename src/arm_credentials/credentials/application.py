"""Service principal credentials backed by a client secret."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from arm_credentials.credentials.base import TokenCredentialsBase, require_non_empty_string
from arm_credentials.credentials.cache import TokenCacheBackend
from arm_credentials.credentials.token import TokenResponse
from arm_credentials.environment import AZURE, AzureEnvironment, TokenAudience
from arm_credentials.exceptions import CacheInternalError, TokenCacheError
from arm_credentials.models import User
from arm_credentials.utils.http import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class ApplicationTokenCredentials(TokenCredentialsBase):
    """Client-credential grant for a registered application."""

    def __init__(
        self,
        client_id: str,
        domain: str,
        secret: str,
        token_audience: str | TokenAudience | None = None,
        environment: AzureEnvironment = AZURE,
        token_cache: TokenCacheBackend | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        require_non_empty_string(secret, "secret")
        super().__init__(
            client_id,
            domain,
            token_audience,
            environment,
            token_cache,
            http_client=http_client,
            timeout_seconds=timeout_seconds,
        )
        self.secret = secret

    def __repr__(self) -> str:
        return f"ApplicationTokenCredentials(client_id={self.client_id!r}, domain={self.domain!r})"

    async def get_token(self) -> TokenResponse:
        """Return a cached token or exchange the client secret for a new one.

        Raises:
            CacheInternalError: Stale cache entries could not be removed.
            TokenExchangeError: The directory rejected the client credentials.
        """
        try:
            return await self.get_token_from_cache()
        except CacheInternalError:
            raise
        except TokenCacheError as exc:
            logger.debug("No cached token for %s (%s), requesting one", self.client_id, exc)

        return await self.auth_context.acquire_token_with_client_credentials(
            self.get_active_directory_resource_id(), self.client_id, self.secret
        )

    async def get_token_from_cache(self, username: str | None = None) -> TokenResponse:
        """Cache lookup that also evicts this client's entries on a miss.

        The same miss is reported for absent and for expired entries, so every
        entry of the client id is removed before the miss is re-raised.
        """
        try:
            return await super().get_token_from_cache(None)
        except TokenCacheError:
            await self.remove_invalid_items_from_cache({"client_id": self.client_id})
            raise

    async def remove_invalid_items_from_cache(self, query: dict[str, Any]) -> None:
        """Remove every entry matching ``query``; removing nothing succeeds.

        Raises:
            CacheInternalError: The cache backend failed to find or remove.
        """
        try:
            entries = await self.token_cache.find(**query)
            if entries:
                await self.token_cache.remove(entries)
        except Exception as exc:
            raise CacheInternalError(str(exc) or type(exc).__name__) from exc

    async def get_token_for_resource(
        self, resource: str, authority: str | None = None
    ) -> TokenResponse:
        context = self.context_for(authority) if authority else self.auth_context
        try:
            return await context.acquire_token(resource, None, self.client_id)
        except TokenCacheError:
            return await context.acquire_token_with_client_credentials(
                resource, self.client_id, self.secret
            )

    def subscription_user(self) -> User:
        return User(name=self.client_id, type="servicePrincipal")
