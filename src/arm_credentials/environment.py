"""Cloud environment endpoints and well-known authentication constants."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from arm_credentials.exceptions import CredentialValidationError

AAD_COMMON_TENANT = "common"
# Public client id shared with the cross-platform CLI; used for device-code
# and username/password logins when the caller does not register an app.
DEFAULT_CLIENT_ID = "04b07795-8ddb-461a-bbee-02f9e1bf7b46"
DEFAULT_LANGUAGE = "en-us"


class TokenAudience(str, Enum):
    GRAPH = "graph"
    BATCH = "batch"


@dataclass(frozen=True)
class AzureEnvironment:
    """Endpoints of one sovereign cloud."""

    name: str
    portal_url: str
    management_endpoint_url: str
    resource_manager_endpoint_url: str
    active_directory_endpoint_url: str
    active_directory_resource_id: str
    active_directory_graph_resource_id: str
    batch_resource_id: str = "https://batch.core.windows.net/"

    def authority_for(self, domain: str) -> str:
        base = self.active_directory_endpoint_url
        if not base.endswith("/"):
            base += "/"
        return f"{base}{domain}"


AZURE = AzureEnvironment(
    name="AzureCloud",
    portal_url="https://portal.azure.com",
    management_endpoint_url="https://management.core.windows.net",
    resource_manager_endpoint_url="https://management.azure.com/",
    active_directory_endpoint_url="https://login.microsoftonline.com/",
    active_directory_resource_id="https://management.core.windows.net/",
    active_directory_graph_resource_id="https://graph.windows.net/",
)

AZURE_CHINA = AzureEnvironment(
    name="AzureChinaCloud",
    portal_url="https://portal.azure.cn",
    management_endpoint_url="https://management.core.chinacloudapi.cn",
    resource_manager_endpoint_url="https://management.chinacloudapi.cn",
    active_directory_endpoint_url="https://login.chinacloudapi.cn/",
    active_directory_resource_id="https://management.core.chinacloudapi.cn/",
    active_directory_graph_resource_id="https://graph.chinacloudapi.cn/",
    batch_resource_id="https://batch.chinacloudapi.cn/",
)

AZURE_US_GOVERNMENT = AzureEnvironment(
    name="AzureUSGovernment",
    portal_url="https://portal.azure.us",
    management_endpoint_url="https://management.core.usgovcloudapi.net",
    resource_manager_endpoint_url="https://management.usgovcloudapi.net",
    active_directory_endpoint_url="https://login.microsoftonline.us/",
    active_directory_resource_id="https://management.core.usgovcloudapi.net/",
    active_directory_graph_resource_id="https://graph.windows.net/",
    batch_resource_id="https://batch.core.usgovcloudapi.net/",
)

AZURE_GERMAN = AzureEnvironment(
    name="AzureGermanCloud",
    portal_url="https://portal.microsoftazure.de/",
    management_endpoint_url="https://management.core.cloudapi.de",
    resource_manager_endpoint_url="https://management.microsoftazure.de",
    active_directory_endpoint_url="https://login.microsoftonline.de/",
    active_directory_resource_id="https://management.core.cloudapi.de/",
    active_directory_graph_resource_id="https://graph.cloudapi.de/",
    batch_resource_id="https://batch.cloudapi.de/",
)

KNOWN_ENVIRONMENTS: dict[str, AzureEnvironment] = {
    env.name.lower(): env for env in (AZURE, AZURE_CHINA, AZURE_US_GOVERNMENT, AZURE_GERMAN)
}


def get_environment(name: str) -> AzureEnvironment:
    env = KNOWN_ENVIRONMENTS.get(name.strip().lower())
    if env is None:
        known = ", ".join(sorted(e.name for e in KNOWN_ENVIRONMENTS.values()))
        raise CredentialValidationError(f"Unknown cloud environment '{name}'. Known: {known}")
    return env
