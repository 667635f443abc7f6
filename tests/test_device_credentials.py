from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from arm_credentials.credentials.cache import TokenCache, TokenCacheEntry
from arm_credentials.credentials.device import DEFAULT_USERNAME, DeviceTokenCredentials
from arm_credentials.credentials.token import TokenResponse
from arm_credentials.environment import AAD_COMMON_TENANT, DEFAULT_CLIENT_ID
from arm_credentials.exceptions import TokenCacheMissError


def test_defaults() -> None:
    credentials = DeviceTokenCredentials()

    assert credentials.client_id == DEFAULT_CLIENT_ID
    assert credentials.domain == AAD_COMMON_TENANT
    assert credentials.username == DEFAULT_USERNAME


@pytest.mark.asyncio
async def test_get_token_reads_cache() -> None:
    cache = TokenCache()
    token = TokenResponse(
        token_type="Bearer",
        access_token="device",
        expires_on=datetime.now(tz=timezone.utc) + timedelta(hours=1),
    )
    await cache.add(
        [
            TokenCacheEntry.from_token(
                token,
                authority="https://login.microsoftonline.com/common",
                client_id=DEFAULT_CLIENT_ID,
                resource="https://management.core.windows.net/",
                user_id="bob@contoso.com",
            )
        ]
    )
    credentials = DeviceTokenCredentials(username="Bob@contoso.com", token_cache=cache)

    result = await credentials.get_token()

    assert result.access_token == "device"


@pytest.mark.asyncio
async def test_get_token_without_cached_login_is_a_miss() -> None:
    credentials = DeviceTokenCredentials(username="bob@contoso.com")

    with pytest.raises(TokenCacheMissError):
        await credentials.get_token()
