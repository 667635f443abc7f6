from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from arm_credentials.credentials.cache import TokenCache, TokenCacheBackend, TokenCacheEntry
from arm_credentials.credentials.token import TokenResponse

AUTHORITY = "https://login.microsoftonline.com/tenant-1"


def _entry(
    access_token: str = "X",
    *,
    client_id: str = "client",
    resource: str = "https://management.core.windows.net/",
    user_id: str | None = None,
    expires_in: int = 3600,
) -> TokenCacheEntry:
    token = TokenResponse(
        token_type="Bearer",
        access_token=access_token,
        expires_on=datetime.now(tz=timezone.utc) + timedelta(seconds=expires_in),
    )
    return TokenCacheEntry.from_token(
        token,
        authority=AUTHORITY,
        client_id=client_id,
        resource=resource,
        user_id=user_id,
    )


@pytest.mark.asyncio
async def test_find_matches_non_none_criteria() -> None:
    cache = TokenCache()
    await cache.add([_entry(client_id="a"), _entry(client_id="b")])

    assert len(await cache.find(client_id="a")) == 1
    assert len(await cache.find(client_id="a", user_id=None)) == 1
    assert len(await cache.find()) == 2


@pytest.mark.asyncio
async def test_user_id_matching_is_case_insensitive() -> None:
    cache = TokenCache()
    await cache.add([_entry(user_id="Alice@Contoso.com")])

    found = await cache.find(user_id="ALICE@contoso.com")

    assert len(found) == 1
    assert found[0].user_id == "alice@contoso.com"


@pytest.mark.asyncio
async def test_add_replaces_entry_with_same_key() -> None:
    cache = TokenCache()
    await cache.add([_entry("old")])
    await cache.add([_entry("new")])

    found = await cache.find(client_id="client")

    assert len(cache) == 1
    assert found[0].token.access_token == "new"


@pytest.mark.asyncio
async def test_remove_is_idempotent() -> None:
    cache = TokenCache()
    entry = _entry()
    await cache.add([entry])

    await cache.remove([entry])
    await cache.remove([entry])

    assert len(cache) == 0


def test_entry_expiry_uses_buffer() -> None:
    assert _entry(expires_in=120).is_expiring_soon() is True
    assert _entry(expires_in=3600).is_expiring_soon() is False


def test_token_cache_satisfies_backend_protocol() -> None:
    assert isinstance(TokenCache(), TokenCacheBackend)
