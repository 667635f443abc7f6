"""Azure Active Directory credentials for Azure Resource Manager clients."""

from arm_credentials.credentials import (
    AccessToken,
    ApplicationTokenCredentials,
    AzureCliCredentials,
    DeviceTokenCredentials,
    DomainCredentials,
    KeyVaultCredentials,
    MSIAppServiceTokenCredentials,
    MSITokenCredentials,
    MSIVmTokenCredentials,
    TokenCache,
    TokenCredentialsBase,
    TokenResponse,
    UserTokenCredentials,
)
from arm_credentials.environment import AzureEnvironment, TokenAudience, get_environment
from arm_credentials.exceptions import AuthError
from arm_credentials.login import (
    AuthResponse,
    interactive,
    interactive_with_auth_response,
    with_app_service_msi,
    with_azure_cli,
    with_service_principal_secret,
    with_service_principal_secret_with_auth_response,
    with_username_password,
    with_username_password_with_auth_response,
    with_vm_msi,
)
from arm_credentials.models import SubscriptionInfo, User
from arm_credentials.signing import CredentialAuth
from arm_credentials.subscriptions import build_tenant_list, get_subscriptions_from_tenants

__all__ = [
    "AccessToken",
    "ApplicationTokenCredentials",
    "AuthError",
    "AuthResponse",
    "AzureCliCredentials",
    "AzureEnvironment",
    "CredentialAuth",
    "DeviceTokenCredentials",
    "DomainCredentials",
    "KeyVaultCredentials",
    "MSIAppServiceTokenCredentials",
    "MSITokenCredentials",
    "MSIVmTokenCredentials",
    "SubscriptionInfo",
    "TokenAudience",
    "TokenCache",
    "TokenCredentialsBase",
    "TokenResponse",
    "User",
    "UserTokenCredentials",
    "build_tenant_list",
    "get_environment",
    "get_subscriptions_from_tenants",
    "interactive",
    "interactive_with_auth_response",
    "with_app_service_msi",
    "with_azure_cli",
    "with_service_principal_secret",
    "with_service_principal_secret_with_auth_response",
    "with_username_password",
    "with_username_password_with_auth_response",
    "with_vm_msi",
]
