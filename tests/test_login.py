from __future__ import annotations

import time
from typing import Any

import httpx
import pytest

from arm_credentials import login
from arm_credentials.credentials import azure_cli
from arm_credentials.credentials.application import ApplicationTokenCredentials
from arm_credentials.credentials.device import DeviceTokenCredentials
from arm_credentials.credentials.msi import MSIAppServiceTokenCredentials, MSIVmTokenCredentials
from arm_credentials.credentials.user import UserTokenCredentials
from arm_credentials.environment import AZURE_CHINA, TokenAudience
from arm_credentials.exceptions import CredentialValidationError

LOGIN_HOSTS = {"login.microsoftonline.com", "login.chinacloudapi.cn"}
MSI_BODY = {"access_token": "X", "token_type": "Bearer", "expires_on": "1502930996"}


class _Cloud:
    """Fake directory and ARM endpoints for the login flows."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def arm_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host not in LOGIN_HOSTS]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host in LOGIN_HOSTS:
            tenant = request.url.path.split("/")[1]
            if request.url.path.endswith("/devicecode"):
                return httpx.Response(
                    200,
                    json={
                        "user_code": "ABC123",
                        "device_code": "dc",
                        "verification_url": "https://microsoft.com/devicelogin",
                        "expires_in": 900,
                        "interval": 5,
                        "message": "To sign in, enter the code ABC123",
                    },
                )
            return httpx.Response(
                200,
                json={
                    "token_type": "Bearer",
                    "access_token": f"token-{tenant}",
                    "expires_on": str(int(time.time()) + 3600),
                    "refresh_token": "mrrt",
                    "userId": "bob@contoso.com",
                },
            )
        if request.url.path == "/tenants":
            return httpx.Response(200, json={"value": [{"tenantId": "t1"}]})
        tenant = request.headers["Authorization"].removeprefix("Bearer token-")
        return httpx.Response(
            200,
            json={
                "value": [
                    {"subscriptionId": f"sub-{tenant}", "displayName": "Dev", "state": "Enabled"}
                ]
            },
        )


@pytest.mark.asyncio
async def test_service_principal_login_lists_tenant_subscriptions(mock_client) -> None:
    cloud = _Cloud()

    response = await login.with_service_principal_secret_with_auth_response(
        "app-id", "s3cret", "tenant-1", http_client=mock_client(cloud)
    )

    assert isinstance(response.credentials, ApplicationTokenCredentials)
    assert [s.id for s in response.subscriptions] == ["sub-tenant-1"]
    assert response.subscriptions[0].user.type == "servicePrincipal"


@pytest.mark.asyncio
async def test_graph_audience_skips_subscriptions(mock_client) -> None:
    cloud = _Cloud()

    response = await login.with_service_principal_secret_with_auth_response(
        "app-id",
        "s3cret",
        "tenant-1",
        token_audience=TokenAudience.GRAPH,
        http_client=mock_client(cloud),
    )

    assert response.subscriptions == []
    assert cloud.arm_requests() == []


@pytest.mark.asyncio
async def test_with_service_principal_secret_returns_credentials(mock_client) -> None:
    credentials = await login.with_service_principal_secret(
        "app-id", "s3cret", "tenant-1", http_client=mock_client(_Cloud())
    )

    assert isinstance(credentials, ApplicationTokenCredentials)


@pytest.mark.asyncio
async def test_environment_comes_from_settings(
    mock_client, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("AZURE_ENVIRONMENT", "AzureChinaCloud")
    cloud = _Cloud()

    credentials = await login.with_service_principal_secret(
        "app-id",
        "s3cret",
        "tenant-1",
        token_audience=TokenAudience.GRAPH,
        http_client=mock_client(cloud),
    )

    assert credentials.environment == AZURE_CHINA
    assert cloud.requests[0].url.host == "login.chinacloudapi.cn"


@pytest.mark.asyncio
async def test_username_password_login_walks_all_tenants(mock_client) -> None:
    cloud = _Cloud()

    response = await login.with_username_password_with_auth_response(
        "bob@contoso.com", "pw", http_client=mock_client(cloud)
    )

    assert isinstance(response.credentials, UserTokenCredentials)
    assert response.credentials.domain == "common"
    assert [(s.tenant_id, s.id) for s in response.subscriptions] == [("t1", "sub-t1")]
    assert response.subscriptions[0].user.name == "bob@contoso.com"


@pytest.mark.asyncio
async def test_interactive_login_reports_user_code(mock_client) -> None:
    cloud = _Cloud()
    messages: list[str] = []

    response = await login.interactive_with_auth_response(
        user_code_response_logger=messages.append,
        language="fr-fr",
        http_client=mock_client(cloud),
    )

    assert messages == ["To sign in, enter the code ABC123"]
    assert isinstance(response.credentials, DeviceTokenCredentials)
    assert response.credentials.username == "bob@contoso.com"
    assert [s.id for s in response.subscriptions] == ["sub-t1"]
    device_request = cloud.requests[0]
    assert device_request.url.path == "/common/oauth2/devicecode"
    assert b"mkt=fr-fr" in device_request.content


@pytest.mark.asyncio
async def test_interactive_prints_message_by_default(
    mock_client, capsys: pytest.CaptureFixture[str]
) -> None:
    await login.interactive(http_client=mock_client(_Cloud()))

    assert "To sign in, enter the code ABC123" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_interactive_graph_audience_needs_tenant(mock_client) -> None:
    with pytest.raises(CredentialValidationError):
        await login.interactive(
            token_audience=TokenAudience.GRAPH, http_client=mock_client(_Cloud())
        )


@pytest.mark.asyncio
async def test_with_app_service_msi_reads_environment(
    mock_client, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MSI_ENDPOINT", "http://127.0.0.1:41741/MSI/token/")
    monkeypatch.setenv("MSI_SECRET", "from-env")
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=MSI_BODY)

    credentials = await login.with_app_service_msi(http_client=mock_client(handler))

    assert isinstance(credentials, MSIAppServiceTokenCredentials)
    assert seen[0].headers["secret"] == "from-env"


@pytest.mark.asyncio
async def test_with_app_service_msi_without_environment_fails() -> None:
    with pytest.raises(CredentialValidationError, match="MSI_ENDPOINT"):
        await login.with_app_service_msi()


@pytest.mark.asyncio
async def test_with_vm_msi_uses_port(mock_client) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=MSI_BODY)

    credentials = await login.with_vm_msi(port=50400, http_client=mock_client(handler))

    assert isinstance(credentials, MSIVmTokenCredentials)
    assert seen[0].url.port == 50400


@pytest.mark.asyncio
async def test_with_azure_cli(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[list[str], dict[str, Any]]] = []

    async def fake_run_az(args: list[str], **kwargs: Any) -> Any:
        calls.append((args, kwargs))
        if args[:2] == ["account", "show"]:
            return {"id": "sub-1", "name": "Dev", "tenantId": "t1", "cloudName": "AzureCloud"}
        return {
            "accessToken": "cli",
            "expires_on": int(time.time()) + 3600,
            "subscription": "sub-1",
            "tenant": "t1",
            "tokenType": "Bearer",
        }

    monkeypatch.setenv("AZURE_CLI_EXECUTABLE", "/opt/az/bin/az")
    monkeypatch.setattr(azure_cli, "run_az", fake_run_az)

    credentials = await login.with_azure_cli()

    assert credentials.subscription_info.id == "sub-1"
    assert all(kwargs["executable"] == "/opt/az/bin/az" for _, kwargs in calls)
