from __future__ import annotations

from typing import AsyncGenerator, Callable
from urllib.parse import parse_qsl

import httpx
import pytest
import pytest_asyncio

from arm_credentials import config, logging_utils

_CONFIG_ENV_KEYS = (
    "MSI_ENDPOINT",
    "MSI_SECRET",
    "MSI_API_VERSION",
    "MSI_VM_PORT",
    "AZURE_ENVIRONMENT",
    "AZURE_TOKEN_AUDIENCE",
    "AZURE_AUTH_LOGGING_ENABLED",
    "AZURE_AUTH_HTTP_TIMEOUT_SECONDS",
    "AZURE_AUTH_DEVICE_CODE_POLL_SECONDS",
    "AZURE_CLI_EXECUTABLE",
    "AZURE_CLI_TIMEOUT_SECONDS",
    "LOG_LEVEL",
    "LOG_FILE",
)

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    config.clear_settings_cache()
    yield
    config.clear_settings_cache()
    logging_utils.reset_logging()


@pytest_asyncio.fixture
async def mock_client() -> AsyncGenerator[Callable[[Handler], httpx.AsyncClient], None]:
    """Build AsyncClients whose requests are answered by ``handler``.

    Every client built during the test is closed afterwards.
    """
    clients: list[httpx.AsyncClient] = []

    def factory(handler: Handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()


@pytest.fixture
def form() -> Callable[[httpx.Request], dict[str, str]]:
    """Decode a form-encoded request body."""

    def parse(request: httpx.Request) -> dict[str, str]:
        return dict(parse_qsl(request.content.decode()))

    return parse
