"""Attach credentials to outgoing HTTP requests."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, AsyncGenerator, Generator, Protocol, runtime_checkable

import httpx

if TYPE_CHECKING:
    from arm_credentials.credentials.token import TokenResponse

AUTHORIZATION_HEADER = "Authorization"


@runtime_checkable
class RequestSigner(Protocol):
    async def sign_request(self, request: httpx.Request) -> httpx.Request: ...


@runtime_checkable
class TokenSource(RequestSigner, Protocol):
    """A credential that can produce a bearer token on demand."""

    async def get_token(self) -> TokenResponse: ...


class BearerTokenSigner(abc.ABC):
    """Mixin signing requests with ``Authorization: <tokenType> <accessToken>``."""

    @abc.abstractmethod
    async def get_token(self) -> TokenResponse:
        """Return the token whose type and value go into the header."""

    async def sign_request(self, request: httpx.Request) -> httpx.Request:
        """Set the Authorization header on ``request`` in place and return it.

        Token acquisition errors propagate unchanged.
        """
        token = await self.get_token()
        request.headers[AUTHORIZATION_HEADER] = token.authorization_value
        return request


class CredentialAuth(httpx.Auth):
    """httpx auth hook delegating to a credential's ``sign_request``.

    Usage::

        async with httpx.AsyncClient(auth=CredentialAuth(credentials)) as client:
            await client.get(url)
    """

    def __init__(self, signer: RequestSigner) -> None:
        self.signer = signer

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("CredentialAuth requires an httpx.AsyncClient")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        await self.signer.sign_request(request)
        yield request
