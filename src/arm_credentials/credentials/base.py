"""Common behaviour of the directory-backed credential kinds."""

from __future__ import annotations

import abc

import httpx

from arm_credentials.credentials.authentication_context import (
    DEVICE_CODE_POLL_SECONDS,
    AuthenticationContext,
)
from arm_credentials.credentials.cache import TokenCache, TokenCacheBackend
from arm_credentials.credentials.token import AccessToken, TokenResponse
from arm_credentials.environment import (
    AAD_COMMON_TENANT,
    AZURE,
    AzureEnvironment,
    TokenAudience,
)
from arm_credentials.exceptions import CredentialValidationError
from arm_credentials.models import User
from arm_credentials.signing import BearerTokenSigner
from arm_credentials.utils.http import DEFAULT_TIMEOUT_SECONDS


def require_non_empty_string(value: object, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise CredentialValidationError(f"{name} must be a non empty string.")
    return value


class TokenCredentialsBase(BearerTokenSigner):
    """Credential bound to a client id, a tenant (``domain``) and an audience.

    ``domain`` may be reassigned; token requests always go to the authority of
    the current domain. All authorities share one token cache.
    """

    def __init__(
        self,
        client_id: str,
        domain: str,
        token_audience: str | TokenAudience | None = None,
        environment: AzureEnvironment = AZURE,
        token_cache: TokenCacheBackend | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEVICE_CODE_POLL_SECONDS,
    ) -> None:
        self.client_id = require_non_empty_string(client_id, "clientId")
        self.domain = require_non_empty_string(domain, "domain")
        self.token_audience = token_audience
        self.environment = environment
        self.token_cache: TokenCacheBackend = token_cache if token_cache is not None else TokenCache()
        self.is_graph_context = token_audience == TokenAudience.GRAPH
        if self.is_graph_context and self.domain.lower() == AAD_COMMON_TENANT:
            raise CredentialValidationError(
                'If the tokenAudience is specified as "graph" then "domain" cannot be '
                'defaulted to "common" tenant. It must be the actual tenant '
                "(preferably a string in a guid format)."
            )
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds
        self._contexts: dict[str, AuthenticationContext] = {}

    @property
    def authority(self) -> str:
        return self.environment.authority_for(self.domain)

    @property
    def auth_context(self) -> AuthenticationContext:
        return self.context_for(self.authority)

    def context_for(self, authority: str) -> AuthenticationContext:
        key = authority.rstrip("/")
        context = self._contexts.get(key)
        if context is None:
            context = AuthenticationContext(
                key,
                self.token_cache,
                http_client=self._http_client,
                timeout_seconds=self._timeout_seconds,
                poll_interval_seconds=self._poll_interval_seconds,
            )
            self._contexts[key] = context
        return context

    def get_active_directory_resource_id(self) -> str:
        audience = self.token_audience
        if audience is None:
            return self.environment.active_directory_resource_id
        if audience == TokenAudience.GRAPH:
            return self.environment.active_directory_graph_resource_id
        if audience == TokenAudience.BATCH:
            return self.environment.batch_resource_id
        return str(audience)

    async def get_token_from_cache(self, username: str | None = None) -> TokenResponse:
        return await self.auth_context.acquire_token(
            self.get_active_directory_resource_id(), username, self.client_id
        )

    @abc.abstractmethod
    async def get_token(self) -> TokenResponse:
        """Return a token for the configured audience."""

    @abc.abstractmethod
    async def get_token_for_resource(
        self, resource: str, authority: str | None = None
    ) -> TokenResponse:
        """Return a token for an arbitrary resource, e.g. from an auth challenge."""

    @abc.abstractmethod
    def subscription_user(self) -> User:
        """Describe the principal for subscription listings."""

    async def get_access_token(self, *scopes: str) -> AccessToken:
        # Scopes are accepted for interface compatibility; the audience is fixed.
        token = await self.get_token()
        return token.to_access_token()
