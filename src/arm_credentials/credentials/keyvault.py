"""Challenge-based authentication for Key Vault.

Key Vault does not advertise its tenant or resource up front. The first
request goes out unsigned, the ``401`` response names both in its
``WWW-Authenticate`` header, and the request is retried once with a token
for that resource. Challenges are remembered per ``scheme://host`` so later
requests are signed before they are sent.
"""

from __future__ import annotations

import json
import logging
import re
from typing import AsyncGenerator, Awaitable, Callable, Generator, Protocol

import httpx

from arm_credentials.credentials.token import TokenResponse
from arm_credentials.exceptions import CredentialValidationError
from arm_credentials.signing import AUTHORIZATION_HEADER

logger = logging.getLogger(__name__)

_CHALLENGE_RE = re.compile(r"^(\w+)(?:\s+(.*))?$")

Challenge = dict[str, str]
Authenticator = Callable[[Challenge], Awaitable[str]]


class ResourceTokenSource(Protocol):
    async def get_token_for_resource(
        self, resource: str, authority: str | None = None
    ) -> TokenResponse: ...


def parse_challenge(header: str | None) -> Challenge | None:
    """Parse a ``Bearer k="v", k2="v2"`` challenge into a dict.

    Returns ``None`` for empty headers, other schemes, or a scheme without
    attributes.
    """
    if not header:
        return None
    match = _CHALLENGE_RE.match(header.strip())
    if not match:
        return None
    scheme, attributes = match.group(1), match.group(2)
    if scheme.lower() != "bearer" or not attributes:
        return None

    challenge: Challenge = {}
    for part in attributes.split(","):
        name, sep, value = part.partition("=")
        if not sep:
            continue
        value = value.strip()
        if value.startswith('"'):
            try:
                value = json.loads(value)
            except ValueError:
                value = value.strip('"')
        challenge[name.strip()] = str(value)
    return challenge


def url_authority(url: httpx.URL) -> str:
    authority = f"{url.scheme}://{url.host}"
    if url.port is not None:
        authority += f":{url.port}"
    return authority


def _challenge_authority(challenge: Challenge) -> str | None:
    return challenge.get("authorization") or challenge.get("authorization_uri")


class KeyVaultCredentials(httpx.Auth):
    """httpx auth hook answering Key Vault bearer challenges.

    Pass either a credential exposing ``get_token_for_resource`` or an
    ``authenticator`` coroutine mapping a challenge to an Authorization value.
    """

    def __init__(
        self,
        credentials: ResourceTokenSource | None = None,
        authenticator: Authenticator | None = None,
    ) -> None:
        if authenticator is None and credentials is None:
            raise CredentialValidationError(
                "Either the authenticator callback or a valid credentials must be provided."
            )
        if credentials is not None and not hasattr(credentials, "get_token_for_resource"):
            raise CredentialValidationError(
                "credentials must be able to acquire tokens for a challenged resource."
            )
        self.credentials = credentials
        self.authenticator: Authenticator = authenticator or self._authenticate_with_credentials
        self.challenge_cache: dict[str, Challenge] = {}

    def get_cached_challenge(self, url: httpx.URL) -> Challenge | None:
        return self.challenge_cache.get(url_authority(url))

    def add_challenge_to_cache(self, url: httpx.URL, challenge: Challenge) -> None:
        self.challenge_cache[url_authority(url)] = challenge

    async def _authenticate_with_credentials(self, challenge: Challenge) -> str:
        if self.credentials is None:
            raise CredentialValidationError(
                "credentials are required to answer a challenge without an authenticator."
            )
        token = await self.credentials.get_token_for_resource(
            challenge["resource"], _challenge_authority(challenge)
        )
        return token.authorization_value

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("KeyVaultCredentials requires an httpx.AsyncClient")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        cached = self.get_cached_challenge(request.url)
        if cached is not None:
            request.headers[AUTHORIZATION_HEADER] = await self.authenticator(cached)

        response = yield request
        if response.status_code != 401:
            return

        challenge = parse_challenge(response.headers.get("www-authenticate"))
        if not challenge or not _challenge_authority(challenge) or not challenge.get("resource"):
            return

        logger.debug("Answering bearer challenge from %s", url_authority(request.url))
        self.add_challenge_to_cache(request.url, challenge)
        request.headers[AUTHORIZATION_HEADER] = await self.authenticator(challenge)
        yield request
