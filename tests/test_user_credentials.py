from __future__ import annotations

import time

import httpx
import pytest

from arm_credentials.credentials.user import UserTokenCredentials
from arm_credentials.exceptions import CredentialValidationError, UserMismatchError
from arm_credentials.models import User


def _password_handler(user_id: str):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "token_type": "Bearer",
                "access_token": "user-token",
                "expires_on": str(int(time.time()) + 3600),
                "refresh_token": "r1",
                "userId": user_id,
            },
        )

    return handler


def test_constructor_requires_password() -> None:
    with pytest.raises(CredentialValidationError, match="password"):
        UserTokenCredentials("client", "tenant-1", "bob@contoso.com", "")


@pytest.mark.asyncio
async def test_password_login_accepts_case_insensitive_user(mock_client, form) -> None:
    credentials = UserTokenCredentials(
        "client",
        "tenant-1",
        "Bob@Contoso.com",
        "pw",
        http_client=mock_client(_password_handler("bob@contoso.com")),
    )

    token = await credentials.get_token()

    assert token.access_token == "user-token"


@pytest.mark.asyncio
async def test_password_login_rejects_other_user(mock_client) -> None:
    credentials = UserTokenCredentials(
        "client",
        "tenant-1",
        "bob@contoso.com",
        "pw",
        http_client=mock_client(_password_handler("mallory@contoso.com")),
    )

    with pytest.raises(UserMismatchError) as excinfo:
        await credentials.get_token()

    assert excinfo.value.user_id == "mallory@contoso.com"
    assert 'doesn\'t match the username "bob@contoso.com"' in str(excinfo.value)


@pytest.mark.asyncio
async def test_second_call_is_served_from_cache(mock_client) -> None:
    calls = {"count": 0}
    inner = _password_handler("bob@contoso.com")

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return inner(request)

    credentials = UserTokenCredentials(
        "client", "tenant-1", "bob@contoso.com", "pw", http_client=mock_client(handler)
    )

    await credentials.get_token()
    await credentials.get_token()

    assert calls["count"] == 1


def test_cross_check_username() -> None:
    credentials = UserTokenCredentials("client", "tenant-1", "Bob@Contoso.com", "pw")

    assert credentials.cross_check_username_with_token("BOB@contoso.COM") is True
    assert credentials.cross_check_username_with_token("alice@contoso.com") is False
    assert credentials.cross_check_username_with_token(None) is False


def test_subscription_user_is_user() -> None:
    credentials = UserTokenCredentials("client", "tenant-1", "bob@contoso.com", "pw")

    assert credentials.subscription_user() == User(name="bob@contoso.com", type="user")


@pytest.mark.asyncio
async def test_rejected_token_is_not_served_from_cache(mock_client) -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(
            200,
            json={
                "token_type": "Bearer",
                "access_token": "anonymous-token",
                "expires_on": str(int(time.time()) + 3600),
                "refresh_token": "r1",
            },
        )

    credentials = UserTokenCredentials(
        "client", "tenant-1", "bob@contoso.com", "pw", http_client=mock_client(handler)
    )

    with pytest.raises(UserMismatchError):
        await credentials.get_token()
    with pytest.raises(UserMismatchError):
        await credentials.get_token()

    assert calls["count"] == 2
    assert len(credentials.token_cache) == 0


@pytest.mark.asyncio
async def test_verified_token_is_cached_for_the_user(mock_client) -> None:
    credentials = UserTokenCredentials(
        "client",
        "tenant-1",
        "Bob@Contoso.com",
        "pw",
        http_client=mock_client(_password_handler("bob@contoso.com")),
    )

    await credentials.get_token()

    entries = await credentials.token_cache.find(user_id="bob@contoso.com")
    assert [entry.token.access_token for entry in entries] == ["user-token"]
