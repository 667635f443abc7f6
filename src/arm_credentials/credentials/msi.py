"""Managed identity credentials for virtual machines and App Service."""

from __future__ import annotations

import abc
import json
import logging
from typing import TYPE_CHECKING

import httpx

from arm_credentials.credentials.token import TokenResponse
from arm_credentials.exceptions import CredentialValidationError, InvalidTokenResponseError
from arm_credentials.signing import BearerTokenSigner
from arm_credentials.utils.http import DEFAULT_TIMEOUT_SECONDS, send
from arm_credentials.utils.masking import redact_body

if TYPE_CHECKING:
    from arm_credentials.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_RESOURCE = "https://management.azure.com/"
DEFAULT_VM_PORT = 50342
DEFAULT_APP_SERVICE_API_VERSION = "2017-09-01"
_EXCEPTION_MARKER = "ExceptionMessage"


class MSITokenCredentials(BearerTokenSigner):
    """Base for tokens served by a local managed-identity endpoint."""

    def __init__(
        self,
        resource: str = DEFAULT_RESOURCE,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not isinstance(resource, str) or not resource:
            raise CredentialValidationError("resource must be a uri of type string.")
        self.resource = resource
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds

    def parse_token_response(self, body: str) -> TokenResponse:
        """Normalise a snake_case token body into a :class:`TokenResponse`.

        Raises:
            InvalidTokenResponseError: The body is not JSON or lacks the token
                type or the access token.
        """
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as exc:
            raise InvalidTokenResponseError(
                f"Invalid token response, body is not JSON: {body[:200]}"
            ) from exc
        if not isinstance(payload, dict):
            raise InvalidTokenResponseError("Invalid token response, expected a JSON object.")

        token = TokenResponse.from_payload(payload)
        if not token.token_type:
            raise InvalidTokenResponseError(
                f"Invalid token response, did not find tokenType. Response body is: {redact_body(body)}"
            )
        if not token.access_token:
            raise InvalidTokenResponseError(
                f"Invalid token response, did not find accessToken. Response body is: {redact_body(body)}"
            )
        return token

    @abc.abstractmethod
    async def get_token(self) -> TokenResponse:
        """Fetch a token for ``self.resource`` from the identity endpoint."""

    async def get_token_for_resource(
        self, resource: str, authority: str | None = None
    ) -> TokenResponse:
        return await self.for_resource(resource).get_token()

    @abc.abstractmethod
    def for_resource(self, resource: str) -> "MSITokenCredentials":
        """Return a copy of these credentials targeting ``resource``."""


class MSIVmTokenCredentials(MSITokenCredentials):
    """Token service running on the VM at ``http://localhost:<port>``."""

    def __init__(
        self,
        resource: str = DEFAULT_RESOURCE,
        port: int = DEFAULT_VM_PORT,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(resource, http_client=http_client, timeout_seconds=timeout_seconds)
        if isinstance(port, bool) or not isinstance(port, int):
            raise CredentialValidationError("port must be a number.")
        self.port = port

    def __repr__(self) -> str:
        return f"MSIVmTokenCredentials(resource={self.resource!r}, port={self.port})"

    @property
    def token_url(self) -> str:
        return f"http://localhost:{self.port}/oauth2/token"

    async def get_token(self) -> TokenResponse:
        response = await send(
            "POST",
            self.token_url,
            client=self._http_client,
            timeout=self._timeout_seconds,
            headers={
                "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
                "Metadata": "true",
            },
            data={"resource": self.resource},
        )
        token = self.parse_token_response(response.text)
        logger.debug("Managed identity token acquired from port %s", self.port)
        return token

    def for_resource(self, resource: str) -> "MSIVmTokenCredentials":
        return MSIVmTokenCredentials(
            resource,
            self.port,
            http_client=self._http_client,
            timeout_seconds=self._timeout_seconds,
        )


class MSIAppServiceTokenCredentials(MSITokenCredentials):
    """Token endpoint exposed to App Service / Functions apps."""

    def __init__(
        self,
        msi_endpoint: str | None,
        msi_secret: str | None,
        resource: str = DEFAULT_RESOURCE,
        msi_api_version: str = DEFAULT_APP_SERVICE_API_VERSION,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(resource, http_client=http_client, timeout_seconds=timeout_seconds)
        if not isinstance(msi_endpoint, str) or not msi_endpoint:
            raise CredentialValidationError(
                'Either provide "msi_endpoint" or set the environment variable '
                '"MSI_ENDPOINT" and it must be of type "string".'
            )
        if not isinstance(msi_secret, str) or not msi_secret:
            raise CredentialValidationError(
                'Either provide "msi_secret" or set the environment variable '
                '"MSI_SECRET" and it must be of type "string".'
            )
        if not isinstance(msi_api_version, str) or not msi_api_version:
            raise CredentialValidationError("msi_api_version must be a non empty string.")
        self.msi_endpoint = msi_endpoint
        self.msi_secret = msi_secret
        self.msi_api_version = msi_api_version

    def __repr__(self) -> str:
        return (
            f"MSIAppServiceTokenCredentials(msi_endpoint={self.msi_endpoint!r}, "
            f"resource={self.resource!r})"
        )

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        resource: str = DEFAULT_RESOURCE,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "MSIAppServiceTokenCredentials":
        msi = settings.managed_identity
        return cls(
            msi.endpoint,
            msi.secret,
            resource,
            msi.api_version,
            http_client=http_client,
            timeout_seconds=settings.http.timeout_seconds,
        )

    @property
    def token_url(self) -> str:
        return self.msi_endpoint if self.msi_endpoint.endswith("/") else f"{self.msi_endpoint}/"

    async def get_token(self) -> TokenResponse:
        url = self.token_url
        response = await send(
            "GET",
            url,
            client=self._http_client,
            timeout=self._timeout_seconds,
            params={"resource": self.resource, "api-version": self.msi_api_version},
            headers={"secret": self.msi_secret},
        )
        body = response.text
        if _EXCEPTION_MARKER in body:
            raise InvalidTokenResponseError(
                f'MSI: Failed to retrieve a token from "{url}" with an error: {redact_body(body)}'
            )
        return self.parse_token_response(body)

    def for_resource(self, resource: str) -> "MSIAppServiceTokenCredentials":
        return MSIAppServiceTokenCredentials(
            self.msi_endpoint,
            self.msi_secret,
            resource,
            self.msi_api_version,
            http_client=self._http_client,
            timeout_seconds=self._timeout_seconds,
        )
