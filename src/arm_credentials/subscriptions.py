"""Tenant and subscription discovery against Azure Resource Manager."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from arm_credentials.credentials.base import TokenCredentialsBase
from arm_credentials.environment import AAD_COMMON_TENANT
from arm_credentials.models import SubscriptionInfo
from arm_credentials.signing import CredentialAuth
from arm_credentials.utils.http import DEFAULT_TIMEOUT_SECONDS, join_url

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2016-06-01"

_DROPPED_FIELDS = ("displayName", "subscriptionId", "subscriptionPolicies", "id")


@asynccontextmanager
async def _client_scope(http_client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    if http_client is not None:
        yield http_client
        return
    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS) as client:
        yield client


async def _list_paged(
    client: httpx.AsyncClient,
    url: str,
    auth: httpx.Auth,
    api_version: str,
) -> list[dict[str, Any]]:
    """Collect ``value`` items from an ARM list call, following ``nextLink``."""
    items: list[dict[str, Any]] = []
    next_url: str | None = url
    params: dict[str, str] | None = {"api-version": api_version}
    while next_url:
        response = await client.get(next_url, params=params, auth=auth)
        response.raise_for_status()
        payload = response.json()
        items.extend(payload.get("value") or [])
        next_url = payload.get("nextLink")
        # nextLink already carries the query string.
        params = None
    return items


async def build_tenant_list(
    credentials: TokenCredentialsBase,
    api_version: str = DEFAULT_API_VERSION,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> list[str]:
    """Return the tenants the credentials can reach.

    A credential bound to a specific tenant only reaches that tenant. For the
    ``common`` tenant the tenants endpoint is listed with the credentials.
    """
    if credentials.domain and credentials.domain.lower() != AAD_COMMON_TENANT:
        return [credentials.domain]

    url = join_url(credentials.environment.resource_manager_endpoint_url, "tenants")
    async with _client_scope(http_client) as client:
        tenants = await _list_paged(client, url, CredentialAuth(credentials), api_version)
    tenant_ids = [tenant["tenantId"] for tenant in tenants if tenant.get("tenantId")]
    logger.debug("Discovered %d tenant(s)", len(tenant_ids))
    return tenant_ids


def _to_subscription_info(
    record: dict[str, Any], tenant_id: str, credentials: TokenCredentialsBase
) -> SubscriptionInfo:
    extra = {key: value for key, value in record.items() if key not in _DROPPED_FIELDS}
    extra.pop("tenantId", None)
    return SubscriptionInfo(
        tenant_id=tenant_id,
        user=credentials.subscription_user(),
        environment_name=credentials.environment.name,
        name=str(record.get("displayName", "")),
        id=str(record.get("subscriptionId", "")),
        extra=extra,
    )


async def get_subscriptions_from_tenants(
    credentials: TokenCredentialsBase,
    tenant_list: list[str],
    api_version: str = DEFAULT_API_VERSION,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> list[SubscriptionInfo]:
    """List subscriptions of every tenant, one tenant at a time.

    ``credentials.domain`` is rebound to each tenant while it is listed and
    restored afterwards, also when a request fails. A failure for any tenant
    aborts the walk; no partial list is returned.
    """
    subscriptions: list[SubscriptionInfo] = []
    original_domain = credentials.domain
    url = join_url(credentials.environment.resource_manager_endpoint_url, "subscriptions")
    auth = CredentialAuth(credentials)
    try:
        async with _client_scope(http_client) as client:
            for tenant in tenant_list:
                credentials.domain = tenant
                records = await _list_paged(client, url, auth, api_version)
                subscriptions.extend(
                    _to_subscription_info(record, tenant, credentials) for record in records
                )
                logger.debug("Tenant %s has %d subscription(s)", tenant, len(records))
    finally:
        credentials.domain = original_domain
    return subscriptions
