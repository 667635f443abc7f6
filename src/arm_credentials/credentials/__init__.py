"""Credential kinds for Azure Resource Manager and related services."""

from arm_credentials.credentials.application import ApplicationTokenCredentials
from arm_credentials.credentials.authentication_context import AuthenticationContext, UserCodeInfo
from arm_credentials.credentials.azure_cli import AzureCliCredentials, CliAccessToken
from arm_credentials.credentials.base import TokenCredentialsBase
from arm_credentials.credentials.cache import TokenCache, TokenCacheBackend, TokenCacheEntry
from arm_credentials.credentials.device import DeviceTokenCredentials
from arm_credentials.credentials.domain import DomainCredentials
from arm_credentials.credentials.keyvault import KeyVaultCredentials, parse_challenge
from arm_credentials.credentials.msi import (
    MSIAppServiceTokenCredentials,
    MSITokenCredentials,
    MSIVmTokenCredentials,
)
from arm_credentials.credentials.token import AccessToken, TokenResponse
from arm_credentials.credentials.user import UserTokenCredentials

__all__ = [
    "AccessToken",
    "ApplicationTokenCredentials",
    "AuthenticationContext",
    "AzureCliCredentials",
    "CliAccessToken",
    "DeviceTokenCredentials",
    "DomainCredentials",
    "KeyVaultCredentials",
    "MSIAppServiceTokenCredentials",
    "MSITokenCredentials",
    "MSIVmTokenCredentials",
    "TokenCache",
    "TokenCacheBackend",
    "TokenCacheEntry",
    "TokenCredentialsBase",
    "TokenResponse",
    "UserCodeInfo",
    "UserTokenCredentials",
    "parse_challenge",
]
