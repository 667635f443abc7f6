"""Configuration for credential bootstrap (login helpers and logging)."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from arm_credentials.environment import get_environment

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")
    verbose: bool = Field(
        default=False,
        description="Force DEBUG output for the arm_credentials loggers.",
    )


class CloudSettings(BaseModel):
    environment: str = Field(default="AzureCloud")
    token_audience: str | None = Field(default=None)

    @field_validator("environment")
    @classmethod
    def _validate_environment(cls, value: str) -> str:
        return get_environment(value).name


class HttpSettings(BaseModel):
    timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    device_code_poll_seconds: float = Field(default=1.0, ge=0, le=60)


class ManagedIdentitySettings(BaseModel):
    endpoint: str | None = Field(default=None)
    secret: str | None = Field(default=None)
    api_version: str = Field(default="2017-09-01")
    vm_port: int = Field(default=50342, ge=1, le=65535)


class AzureCliSettings(BaseModel):
    executable: str = Field(default="az")
    timeout_seconds: int = Field(default=30, ge=1, le=600)


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cloud: CloudSettings = Field(default_factory=CloudSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    managed_identity: ManagedIdentitySettings = Field(default_factory=ManagedIdentitySettings)
    azure_cli: AzureCliSettings = Field(default_factory=AzureCliSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "verbose": "AZURE_AUTH_LOGGING_ENABLED",
    "environment": "AZURE_ENVIRONMENT",
    "token_audience": "AZURE_TOKEN_AUDIENCE",
    "http_timeout": "AZURE_AUTH_HTTP_TIMEOUT_SECONDS",
    "device_code_poll": "AZURE_AUTH_DEVICE_CODE_POLL_SECONDS",
    "msi_endpoint": "MSI_ENDPOINT",
    "msi_secret": "MSI_SECRET",
    "msi_api_version": "MSI_API_VERSION",
    "msi_port": "MSI_VM_PORT",
    "az_executable": "AZURE_CLI_EXECUTABLE",
    "az_timeout": "AZURE_CLI_TIMEOUT_SECONDS",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def _env_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def load_settings(env_file: str | None = None) -> Settings:
    """Load configuration and cache the result.

    ``env_file`` names a dotenv file whose values are loaded (without
    overriding the process environment) before the first read.
    """

    return _load_settings_cached(env_file)


def clear_settings_cache() -> None:
    _load_settings_cached.cache_clear()


@lru_cache(maxsize=1)
def _load_settings_cached(env_file: str | None) -> Settings:
    if env_file:
        load_dotenv(dotenv_path=env_file)

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _env_str(ENV_KEYS["log_file"]),
            "verbose": _env_bool(ENV_KEYS["verbose"], LoggingSettings().verbose),
        },
        "cloud": {
            "environment": os.getenv(ENV_KEYS["environment"], CloudSettings().environment),
            "token_audience": _env_str(ENV_KEYS["token_audience"]),
        },
        "http": {
            "timeout_seconds": _env_float(
                ENV_KEYS["http_timeout"],
                HttpSettings().timeout_seconds,
            ),
            "device_code_poll_seconds": _env_float(
                ENV_KEYS["device_code_poll"],
                HttpSettings().device_code_poll_seconds,
            ),
        },
        "managed_identity": {
            "endpoint": _env_str(ENV_KEYS["msi_endpoint"]),
            "secret": _env_str(ENV_KEYS["msi_secret"]),
            "api_version": os.getenv(
                ENV_KEYS["msi_api_version"], ManagedIdentitySettings().api_version
            ),
            "vm_port": _env_int(ENV_KEYS["msi_port"], ManagedIdentitySettings().vm_port),
        },
        "azure_cli": {
            "executable": os.getenv(ENV_KEYS["az_executable"], AzureCliSettings().executable),
            "timeout_seconds": _env_int(
                ENV_KEYS["az_timeout"],
                AzureCliSettings().timeout_seconds,
            ),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
