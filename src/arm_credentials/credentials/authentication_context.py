"""OAuth 2.0 token acquisition against one directory authority.

Implements the cache-first lookup and the grant types the credential kinds
need: client credentials, resource-owner password, device code and refresh
token. Every token obtained over the network is written back to the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any

import httpx

from arm_credentials.credentials.cache import (
    EXPIRATION_BUFFER_SECONDS,
    TokenCache,
    TokenCacheBackend,
    TokenCacheEntry,
)
from arm_credentials.credentials.token import TokenResponse
from arm_credentials.environment import DEFAULT_LANGUAGE
from arm_credentials.exceptions import (
    InvalidTokenResponseError,
    TokenCacheError,
    TokenCacheMissError,
    TokenExchangeError,
)
from arm_credentials.utils.http import DEFAULT_TIMEOUT_SECONDS, json_or_none, send
from arm_credentials.utils.masking import redact_sensitive_fields

logger = logging.getLogger(__name__)

_API_VERSION = "1.0"
_AUTHORIZATION_PENDING = "authorization_pending"
DEVICE_CODE_POLL_SECONDS = 1.0


@dataclass(frozen=True)
class UserCodeInfo:
    """Device-authorization response shown to the user."""

    user_code: str
    device_code: str
    verification_url: str
    expires_in: int
    interval: int
    message: str

    def __repr__(self) -> str:
        return (
            f"UserCodeInfo(user_code={self.user_code!r}, verification_url="
            f"{self.verification_url!r}, expires_in={self.expires_in})"
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "UserCodeInfo":
        try:
            return cls(
                user_code=str(payload["user_code"]),
                device_code=str(payload["device_code"]),
                verification_url=str(
                    payload.get("verification_url") or payload.get("verification_uri", "")
                ),
                expires_in=int(payload.get("expires_in", 900)),
                interval=int(payload.get("interval", 5)),
                message=str(payload.get("message", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenResponseError(
                f"Invalid device code response: {redact_sensitive_fields(payload)}"
            ) from exc


class AuthenticationContext:
    """Token client for ``<directory endpoint>/<tenant>``."""

    def __init__(
        self,
        authority: str,
        token_cache: TokenCacheBackend | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEVICE_CODE_POLL_SECONDS,
    ) -> None:
        self.authority = authority.rstrip("/")
        self.cache: TokenCacheBackend = token_cache if token_cache is not None else TokenCache()
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds

    @property
    def token_endpoint(self) -> str:
        return f"{self.authority}/oauth2/token"

    @property
    def device_code_endpoint(self) -> str:
        return f"{self.authority}/oauth2/devicecode"

    async def acquire_token(
        self,
        resource: str,
        user_id: str | None,
        client_id: str,
    ) -> TokenResponse:
        """Return a cached token, redeeming a cached refresh token if needed.

        Raises:
            TokenCacheMissError: No usable entry exists.
            TokenCacheError: The cache holds more than one matching token.
        """
        candidates = await self.cache.find(client_id=client_id, user_id=user_id)
        exact = [
            entry
            for entry in candidates
            if entry.authority == self.authority and entry.resource == resource
        ]
        if len(exact) > 1:
            raise TokenCacheError(
                "More than one token matches the criteria. The result is ambiguous.",
                code="multiple_matching_tokens",
            )
        if exact:
            entry = exact[0]
            if not entry.is_expiring_soon(EXPIRATION_BUFFER_SECONDS):
                logger.debug("Token cache hit for client %s", client_id)
                return entry.token
            if entry.token.refresh_token:
                logger.debug("Cached token for client %s is stale, refreshing", client_id)
                await self.cache.remove([entry])
                return await self._refresh(entry, resource, client_id, user_id)
            raise TokenCacheMissError()

        if user_id is not None:
            # Multi-resource refresh tokens are valid for other resources and
            # other tenants of the same user.
            for entry in candidates:
                if entry.token.refresh_token:
                    logger.debug("Redeeming cached refresh token at %s", self.authority)
                    return await self._refresh(entry, resource, client_id, user_id)
        raise TokenCacheMissError()

    async def acquire_token_with_client_credentials(
        self,
        resource: str,
        client_id: str,
        client_secret: str,
    ) -> TokenResponse:
        token = await self._request_token(
            {
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
                "resource": resource,
            }
        )
        await self.store_token(token, resource, client_id, None)
        return token

    async def acquire_token_with_username_password(
        self,
        resource: str,
        username: str,
        password: str,
        client_id: str,
    ) -> TokenResponse:
        token = await self._request_token(
            {
                "grant_type": "password",
                "client_id": client_id,
                "username": username,
                "password": password,
                "resource": resource,
                "scope": "openid",
            }
        )
        # Callers cache the token with store_token once the user has been verified.
        return token

    async def acquire_user_code(
        self,
        resource: str,
        client_id: str,
        language: str = DEFAULT_LANGUAGE,
    ) -> UserCodeInfo:
        response = await send(
            "POST",
            self.device_code_endpoint,
            client=self._http_client,
            timeout=self._timeout_seconds,
            params={"api-version": _API_VERSION},
            data={"client_id": client_id, "resource": resource, "mkt": language},
            headers={"Accept": "application/json"},
        )
        payload = json_or_none(response)
        if response.status_code != 200 or not isinstance(payload, dict):
            raise self._exchange_error(response, payload)
        if payload.get("error"):
            raise self._exchange_error(response, payload)
        return UserCodeInfo.from_payload(payload)

    async def acquire_token_with_device_code(
        self,
        resource: str,
        client_id: str,
        user_code: UserCodeInfo,
    ) -> TokenResponse:
        """Poll until the user completes the device-code login.

        Only ``authorization_pending`` is retried; every other error is final.
        """
        data = {
            "grant_type": "device_code",
            "client_id": client_id,
            "resource": resource,
            "code": user_code.device_code,
        }
        deadline = time.monotonic() + user_code.expires_in
        while True:
            try:
                token = await self._request_token(data)
            except TokenExchangeError as exc:
                if exc.code != _AUTHORIZATION_PENDING:
                    raise
                if time.monotonic() >= deadline:
                    raise TokenExchangeError(
                        "The device code expired before the user completed authorization.",
                        code="code_expired",
                        status_code=exc.status_code,
                    ) from exc
                await asyncio.sleep(self._poll_interval_seconds)
                continue
            await self.store_token(token, resource, client_id, token.user_id)
            return token

    async def _refresh(
        self,
        entry: TokenCacheEntry,
        resource: str,
        client_id: str,
        user_id: str | None,
    ) -> TokenResponse:
        token = await self._request_token(
            {
                "grant_type": "refresh_token",
                "client_id": client_id,
                "refresh_token": entry.token.refresh_token or "",
                "resource": resource,
            }
        )
        if token.user_id is None and entry.token.user_id:
            token = replace(
                token,
                refresh_token=token.refresh_token or entry.token.refresh_token,
                user_id=entry.token.user_id,
            )
        await self.store_token(token, resource, client_id, user_id or token.user_id)
        return token

    async def store_token(
        self,
        token: TokenResponse,
        resource: str,
        client_id: str,
        user_id: str | None,
    ) -> None:
        entry = TokenCacheEntry.from_token(
            token,
            authority=self.authority,
            client_id=client_id,
            resource=resource,
            user_id=user_id,
        )
        await self.cache.add([entry])

    async def _request_token(self, data: dict[str, str]) -> TokenResponse:
        response = await send(
            "POST",
            self.token_endpoint,
            client=self._http_client,
            timeout=self._timeout_seconds,
            params={"api-version": _API_VERSION},
            data=data,
            headers={"Accept": "application/json"},
        )
        payload = json_or_none(response)
        if response.status_code != 200 or not isinstance(payload, dict) or payload.get("error"):
            raise self._exchange_error(response, payload)

        token = TokenResponse.from_payload(payload)
        if not token.access_token or not token.token_type:
            raise InvalidTokenResponseError(
                "Invalid token response, did not find access_token or token_type. "
                f"Response body is: {redact_sensitive_fields(payload)}"
            )
        logger.debug(
            "Token issued by %s (grant=%s, expires_on=%s)",
            self.authority,
            data.get("grant_type"),
            token.expires_on,
        )
        return token

    def _exchange_error(self, response: httpx.Response, payload: Any) -> TokenExchangeError:
        if isinstance(payload, dict) and payload.get("error"):
            code = str(payload["error"])
            description = str(payload.get("error_description") or code)
            if code != _AUTHORIZATION_PENDING:
                logger.warning(
                    "Token request to %s failed: %s (status=%s)",
                    self.authority,
                    code,
                    response.status_code,
                )
            return TokenExchangeError(
                f"Get Token request returned http error: {response.status_code} "
                f"and server response: {code}: {description}",
                code=code,
                status_code=response.status_code,
            )
        logger.warning(
            "Token request to %s failed with status %s", self.authority, response.status_code
        )
        return TokenExchangeError(
            f"Get Token request returned http error: {response.status_code} "
            f"and server response: {response.text[:500]}",
            status_code=response.status_code,
        )
