"""Credentials produced by an interactive device-code login."""

from __future__ import annotations

import httpx

from arm_credentials.credentials.authentication_context import DEVICE_CODE_POLL_SECONDS
from arm_credentials.credentials.base import TokenCredentialsBase
from arm_credentials.credentials.cache import TokenCacheBackend
from arm_credentials.credentials.token import TokenResponse
from arm_credentials.environment import (
    AAD_COMMON_TENANT,
    AZURE,
    DEFAULT_CLIENT_ID,
    AzureEnvironment,
    TokenAudience,
)
from arm_credentials.models import User
from arm_credentials.utils.http import DEFAULT_TIMEOUT_SECONDS

DEFAULT_USERNAME = "user@example.com"


class DeviceTokenCredentials(TokenCredentialsBase):
    """Reads tokens placed in the cache by the device-code flow.

    There is no secret to fall back on: once the cache (including its refresh
    tokens) cannot satisfy a request the user has to sign in again.
    """

    def __init__(
        self,
        client_id: str | None = None,
        domain: str | None = None,
        username: str | None = None,
        token_audience: str | TokenAudience | None = None,
        environment: AzureEnvironment = AZURE,
        token_cache: TokenCacheBackend | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEVICE_CODE_POLL_SECONDS,
    ) -> None:
        super().__init__(
            client_id or DEFAULT_CLIENT_ID,
            domain or AAD_COMMON_TENANT,
            token_audience,
            environment,
            token_cache,
            http_client=http_client,
            timeout_seconds=timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )
        self.username = username or DEFAULT_USERNAME

    def __repr__(self) -> str:
        return f"DeviceTokenCredentials(username={self.username!r}, domain={self.domain!r})"

    async def get_token(self) -> TokenResponse:
        return await self.get_token_from_cache(self.username)

    async def get_token_for_resource(
        self, resource: str, authority: str | None = None
    ) -> TokenResponse:
        context = self.context_for(authority) if authority else self.auth_context
        return await context.acquire_token(resource, self.username, self.client_id)

    def subscription_user(self) -> User:
        return User(name=self.username, type="user")
