"""Login helpers: build credentials, verify them, and discover subscriptions.

These are the only functions that read process configuration
(:func:`arm_credentials.config.load_settings`); the credential classes take
everything as arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, cast

import httpx

from arm_credentials.config import Settings, load_settings
from arm_credentials.credentials.application import ApplicationTokenCredentials
from arm_credentials.credentials.azure_cli import AzureCliCredentials
from arm_credentials.credentials.base import TokenCredentialsBase
from arm_credentials.credentials.cache import TokenCache, TokenCacheBackend
from arm_credentials.credentials.device import DeviceTokenCredentials
from arm_credentials.credentials.msi import (
    DEFAULT_RESOURCE,
    MSIAppServiceTokenCredentials,
    MSIVmTokenCredentials,
)
from arm_credentials.credentials.user import UserTokenCredentials
from arm_credentials.environment import (
    AAD_COMMON_TENANT,
    DEFAULT_CLIENT_ID,
    DEFAULT_LANGUAGE,
    AzureEnvironment,
    TokenAudience,
    get_environment,
)
from arm_credentials.logging_utils import get_logger
from arm_credentials.models import SubscriptionInfo
from arm_credentials.subscriptions import build_tenant_list, get_subscriptions_from_tenants

UserCodeLogger = Callable[[str], None]


@dataclass
class AuthResponse:
    credentials: TokenCredentialsBase
    subscriptions: list[SubscriptionInfo] = field(default_factory=list)


def _resolve_environment(settings: Settings, environment: AzureEnvironment | None) -> AzureEnvironment:
    if environment is not None:
        return environment
    return get_environment(settings.cloud.environment)


def _resolve_audience(
    settings: Settings, token_audience: str | TokenAudience | None
) -> str | TokenAudience | None:
    return token_audience if token_audience is not None else settings.cloud.token_audience


def _lists_subscriptions(token_audience: str | TokenAudience | None) -> bool:
    # Graph tokens are tenant scoped; there is nothing to list.
    return token_audience != TokenAudience.GRAPH


async def _discover_subscriptions(
    credentials: TokenCredentialsBase,
    tenants: list[str] | None,
    http_client: httpx.AsyncClient | None,
) -> list[SubscriptionInfo]:
    if tenants is None:
        tenants = await build_tenant_list(credentials, http_client=http_client)
    return await get_subscriptions_from_tenants(credentials, tenants, http_client=http_client)


async def with_service_principal_secret_with_auth_response(
    client_id: str,
    secret: str,
    domain: str,
    *,
    token_audience: str | TokenAudience | None = None,
    environment: AzureEnvironment | None = None,
    token_cache: TokenCacheBackend | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AuthResponse:
    """Sign in as a service principal and list the tenant's subscriptions."""
    settings = load_settings()
    logger = get_logger(__name__)
    token_audience = _resolve_audience(settings, token_audience)
    credentials = ApplicationTokenCredentials(
        client_id,
        domain,
        secret,
        token_audience,
        _resolve_environment(settings, environment),
        token_cache,
        http_client=http_client,
        timeout_seconds=settings.http.timeout_seconds,
    )
    await credentials.get_token()
    logger.info("Service principal %s signed in to %s", client_id, domain)

    subscriptions: list[SubscriptionInfo] = []
    if _lists_subscriptions(token_audience):
        subscriptions = await _discover_subscriptions(credentials, [domain], http_client)
    return AuthResponse(credentials, subscriptions)


async def with_service_principal_secret(
    client_id: str,
    secret: str,
    domain: str,
    **options: Any,
) -> ApplicationTokenCredentials:
    response = await with_service_principal_secret_with_auth_response(
        client_id, secret, domain, **options
    )
    return cast(ApplicationTokenCredentials, response.credentials)


async def with_username_password_with_auth_response(
    username: str,
    password: str,
    *,
    client_id: str | None = None,
    domain: str | None = None,
    token_audience: str | TokenAudience | None = None,
    environment: AzureEnvironment | None = None,
    token_cache: TokenCacheBackend | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AuthResponse:
    """Sign in with a work or school account's password.

    With the default ``common`` domain, subscriptions of every tenant the user
    belongs to are listed.
    """
    settings = load_settings()
    logger = get_logger(__name__)
    token_audience = _resolve_audience(settings, token_audience)
    credentials = UserTokenCredentials(
        client_id or DEFAULT_CLIENT_ID,
        domain or AAD_COMMON_TENANT,
        username,
        password,
        token_audience,
        _resolve_environment(settings, environment),
        token_cache,
        http_client=http_client,
        timeout_seconds=settings.http.timeout_seconds,
    )
    await credentials.get_token()
    logger.info("User %s signed in", username)

    subscriptions: list[SubscriptionInfo] = []
    if _lists_subscriptions(token_audience):
        subscriptions = await _discover_subscriptions(credentials, None, http_client)
    return AuthResponse(credentials, subscriptions)


async def with_username_password(
    username: str,
    password: str,
    **options: Any,
) -> UserTokenCredentials:
    response = await with_username_password_with_auth_response(
        username, password, **options
    )
    return cast(UserTokenCredentials, response.credentials)


async def interactive_with_auth_response(
    *,
    client_id: str | None = None,
    domain: str | None = None,
    token_audience: str | TokenAudience | None = None,
    environment: AzureEnvironment | None = None,
    token_cache: TokenCacheBackend | None = None,
    language: str = DEFAULT_LANGUAGE,
    user_code_response_logger: UserCodeLogger | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AuthResponse:
    """Device-code login.

    The user-code message (``To sign in, use a web browser to open ...``) is
    handed to ``user_code_response_logger`` or printed to stdout. The call
    returns once the user has completed the login in a browser.
    """
    settings = load_settings()
    logger = get_logger(__name__)
    token_audience = _resolve_audience(settings, token_audience)
    environment = _resolve_environment(settings, environment)
    credentials = DeviceTokenCredentials(
        client_id,
        domain,
        None,
        token_audience,
        environment,
        token_cache if token_cache is not None else TokenCache(),
        http_client=http_client,
        timeout_seconds=settings.http.timeout_seconds,
        poll_interval_seconds=settings.http.device_code_poll_seconds,
    )

    context = credentials.auth_context
    resource = environment.active_directory_resource_id
    user_code = await context.acquire_user_code(resource, credentials.client_id, language)
    if user_code_response_logger is not None:
        user_code_response_logger(user_code.message)
    else:
        print(user_code.message)

    token = await context.acquire_token_with_device_code(
        resource, credentials.client_id, user_code
    )
    if token.user_id:
        credentials.username = token.user_id
    logger.info("Interactive login completed for %s", credentials.username)

    subscriptions: list[SubscriptionInfo] = []
    if _lists_subscriptions(token_audience):
        subscriptions = await _discover_subscriptions(credentials, None, http_client)
    return AuthResponse(credentials, subscriptions)


async def interactive(**options: Any) -> DeviceTokenCredentials:
    response = await interactive_with_auth_response(**options)
    return cast(DeviceTokenCredentials, response.credentials)


async def with_vm_msi(
    resource: str | None = None,
    port: int | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> MSIVmTokenCredentials:
    """Credentials from the VM managed-identity extension, verified with one token request."""
    settings = load_settings()
    credentials = MSIVmTokenCredentials(
        resource or DEFAULT_RESOURCE,
        port if port is not None else settings.managed_identity.vm_port,
        http_client=http_client,
        timeout_seconds=settings.http.timeout_seconds,
    )
    await credentials.get_token()
    return credentials


async def with_app_service_msi(
    resource: str | None = None,
    *,
    msi_endpoint: str | None = None,
    msi_secret: str | None = None,
    msi_api_version: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> MSIAppServiceTokenCredentials:
    """Credentials from the App Service identity endpoint.

    Endpoint and secret default to ``MSI_ENDPOINT`` and ``MSI_SECRET``.
    """
    settings = load_settings()
    msi = settings.managed_identity
    credentials = MSIAppServiceTokenCredentials(
        msi_endpoint or msi.endpoint,
        msi_secret or msi.secret,
        resource or DEFAULT_RESOURCE,
        msi_api_version or msi.api_version,
        http_client=http_client,
        timeout_seconds=settings.http.timeout_seconds,
    )
    await credentials.get_token()
    return credentials


async def with_azure_cli() -> AzureCliCredentials:
    settings = load_settings()
    return await AzureCliCredentials.create(
        executable=settings.azure_cli.executable,
        timeout=settings.azure_cli.timeout_seconds,
    )
