from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from arm_credentials.credentials.msi import (
    MSIAppServiceTokenCredentials,
    MSITokenCredentials,
    MSIVmTokenCredentials,
)
from arm_credentials.exceptions import CredentialValidationError, InvalidTokenResponseError

MSI_BODY = {"access_token": "X", "token_type": "Bearer", "expires_on": "1502930996"}


def test_base_class_cannot_be_instantiated() -> None:
    with pytest.raises(TypeError):
        MSITokenCredentials()  # type: ignore[abstract]


def test_parse_token_response_normalises_snake_case() -> None:
    credentials = MSIVmTokenCredentials()

    token = credentials.parse_token_response(
        '{"access_token":"X","token_type":"Bearer","expires_on":"1502930996"}'
    )

    assert token.access_token == "X"
    assert token.token_type == "Bearer"
    assert token.expires_on == datetime(2017, 8, 17, 0, 49, 56, tzinfo=timezone.utc)


def test_parse_token_response_requires_token_type() -> None:
    with pytest.raises(InvalidTokenResponseError, match="did not find tokenType"):
        MSIVmTokenCredentials().parse_token_response('{"access_token": "X"}')


def test_parse_token_response_requires_access_token() -> None:
    with pytest.raises(InvalidTokenResponseError, match="did not find accessToken"):
        MSIVmTokenCredentials().parse_token_response('{"token_type": "Bearer"}')


def test_parse_token_response_rejects_non_json() -> None:
    with pytest.raises(InvalidTokenResponseError):
        MSIVmTokenCredentials().parse_token_response("<html>oops</html>")


def test_vm_port_must_be_int() -> None:
    with pytest.raises(CredentialValidationError, match="port"):
        MSIVmTokenCredentials(port="50342")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_vm_get_token_posts_to_local_endpoint(mock_client, form) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=MSI_BODY)

    credentials = MSIVmTokenCredentials(port=50343, http_client=mock_client(handler))

    token = await credentials.get_token()

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "http://localhost:50343/oauth2/token"
    assert request.headers["Metadata"] == "true"
    assert form(request) == {"resource": "https://management.azure.com/"}
    assert token.access_token == "X"


@pytest.mark.asyncio
async def test_vm_sign_request_sets_authorization(mock_client) -> None:
    credentials = MSIVmTokenCredentials(
        http_client=mock_client(lambda request: httpx.Response(200, json=MSI_BODY))
    )
    request = httpx.Request("GET", "https://management.azure.com/subscriptions")

    signed = await credentials.sign_request(request)

    assert signed is request
    assert request.headers["Authorization"] == "Bearer X"


@pytest.mark.parametrize(
    ("endpoint", "secret", "message"),
    [
        (None, "s", "MSI_ENDPOINT"),
        ("", "s", "MSI_ENDPOINT"),
        ("http://127.0.0.1:41741/MSI/token/", None, "MSI_SECRET"),
    ],
)
def test_app_service_requires_endpoint_and_secret(
    endpoint: str | None, secret: str | None, message: str
) -> None:
    with pytest.raises(CredentialValidationError, match=message):
        MSIAppServiceTokenCredentials(endpoint, secret)


@pytest.mark.asyncio
async def test_app_service_get_token(mock_client) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=MSI_BODY)

    credentials = MSIAppServiceTokenCredentials(
        "http://127.0.0.1:41741/MSI/token",
        "69418689F1E342DD946CB82994CDA3CB",
        http_client=mock_client(handler),
    )

    token = await credentials.get_token()

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/MSI/token/"
    assert request.url.params["resource"] == "https://management.azure.com/"
    assert request.url.params["api-version"] == "2017-09-01"
    assert request.headers["secret"] == "69418689F1E342DD946CB82994CDA3CB"
    assert token.access_token == "X"
    assert token.expires_on == datetime(2017, 8, 17, 0, 49, 56, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_app_service_rejects_exception_body(mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"ExceptionMessage": "The resource is not available", "StatusCode": 400},
        )

    credentials = MSIAppServiceTokenCredentials(
        "http://127.0.0.1:41741/MSI/token/", "secret", http_client=mock_client(handler)
    )

    with pytest.raises(InvalidTokenResponseError, match="MSI: Failed to retrieve a token"):
        await credentials.get_token()


@pytest.mark.asyncio
async def test_get_token_for_resource_retargets(mock_client) -> None:
    resources: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        resources.append(request.url.params["resource"])
        return httpx.Response(200, json=MSI_BODY)

    credentials = MSIAppServiceTokenCredentials(
        "http://127.0.0.1:41741/MSI/token/", "secret", http_client=mock_client(handler)
    )

    await credentials.get_token_for_resource("https://vault.azure.net")

    assert resources == ["https://vault.azure.net"]
    assert credentials.resource == "https://management.azure.com/"


def test_app_service_from_settings() -> None:
    settings = SimpleNamespace(
        managed_identity=SimpleNamespace(
            endpoint="http://127.0.0.1:41741/MSI/token/",
            secret="from-env",
            api_version="2017-09-01",
        ),
        http=SimpleNamespace(timeout_seconds=5.0),
    )

    credentials = MSIAppServiceTokenCredentials.from_settings(settings)  # type: ignore[arg-type]

    assert credentials.msi_secret == "from-env"
    assert credentials.msi_endpoint == "http://127.0.0.1:41741/MSI/token/"
